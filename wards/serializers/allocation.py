import bleach
from rest_framework import serializers

from wards.models import Allocation


class AllocationCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    roomId = serializers.IntegerField(min_value=1)
    allocationDate = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class DischargeSerializer(serializers.Serializer):
    dischargeDate = serializers.DateTimeField(required=False, allow_null=True)


class TransferSerializer(serializers.Serializer):
    newRoomId = serializers.IntegerField(min_value=1)


def serialize_allocation(allocation: Allocation) -> dict:
    patient = allocation.patient
    room = allocation.room
    return {
        'id': allocation.id,
        'patientId': allocation.patient_id,
        'patientName': patient.name,
        'patientEmail': patient.email,
        'roomId': allocation.room_id,
        'roomNumber': room.room_number,
        'roomType': room.room_type,
        'allocationDate': allocation.allocation_date.isoformat(),
        'dischargeDate': allocation.discharge_date.isoformat() if allocation.discharge_date else None,
        'status': allocation.status,
        'totalAmount': str(allocation.total_amount) if allocation.total_amount is not None else None,
        'notes': allocation.notes,
        'createdAt': allocation.created_at.isoformat() if allocation.created_at else None,
        'updatedAt': allocation.updated_at.isoformat() if allocation.updated_at else None,
    }
