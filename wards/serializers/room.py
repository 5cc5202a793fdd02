from decimal import Decimal

import bleach
from rest_framework import serializers

from wards.models import Room

ROOM_FIELDS = {
    'roomNumber': 'room_number',
    'roomType': 'room_type',
    'floor': 'floor',
    'capacity': 'capacity',
    'status': 'status',
    'pricePerDay': 'price_per_day',
    'description': 'description',
}


class RoomSerializer(serializers.Serializer):
    roomNumber = serializers.CharField(max_length=32)
    roomType = serializers.ChoiceField(choices=[c for c, _ in Room.TYPE_CHOICES])
    floor = serializers.IntegerField()
    capacity = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=[c for c, _ in Room.STATUS_CHOICES], required=False)
    pricePerDay = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.00'))
    description = serializers.CharField(required=False, allow_blank=True)

    def validate_roomNumber(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('room number must not be empty')
        return v

    def validate_description(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def to_model_fields(self) -> dict:
        return {ROOM_FIELDS[k]: v for k, v in self.validated_data.items()}


class RoomStatusQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Room.STATUS_CHOICES], required=False)
    type = serializers.ChoiceField(choices=[c for c, _ in Room.TYPE_CHOICES], required=False)


def serialize_room(room: Room) -> dict:
    return {
        'id': room.id,
        'roomNumber': room.room_number,
        'roomType': room.room_type,
        'floor': room.floor,
        'capacity': room.capacity,
        'status': room.status,
        'pricePerDay': str(room.price_per_day),
        'description': room.description,
        'createdAt': room.created_at.isoformat() if room.created_at else None,
        'updatedAt': room.updated_at.isoformat() if room.updated_at else None,
    }
