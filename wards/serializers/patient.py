import bleach
from rest_framework import serializers

from wards.models import Patient

# request key -> model field
PATIENT_FIELDS = {
    'name': 'name',
    'email': 'email',
    'phone': 'phone',
    'address': 'address',
    'dateOfBirth': 'date_of_birth',
    'gender': 'gender',
    'bloodGroup': 'blood_group',
    'status': 'status',
}


class PatientSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    address = serializers.CharField(required=False, allow_blank=True)
    dateOfBirth = serializers.DateField(required=False, allow_null=True)
    gender = serializers.CharField(required=False, allow_blank=True, max_length=16)
    bloodGroup = serializers.CharField(required=False, allow_blank=True, max_length=8)
    status = serializers.ChoiceField(choices=[c for c, _ in Patient.STATUS_CHOICES], required=False)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('name must have at least 2 characters')
        return v

    def validate_address(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def to_model_fields(self) -> dict:
        return {PATIENT_FIELDS[k]: v for k, v in self.validated_data.items()}


def serialize_patient(patient: Patient, current=None) -> dict:
    """``current`` is the patient's ACTIVE allocation, when known."""
    data = {
        'id': patient.id,
        'name': patient.name,
        'email': patient.email,
        'phone': patient.phone,
        'address': patient.address,
        'dateOfBirth': patient.date_of_birth.isoformat() if patient.date_of_birth else None,
        'gender': patient.gender,
        'bloodGroup': patient.blood_group,
        'status': patient.status,
        'createdAt': patient.created_at.isoformat() if patient.created_at else None,
        'updatedAt': patient.updated_at.isoformat() if patient.updated_at else None,
    }
    if current is not None:
        data.update({
            'allocationId': current.id,
            'roomId': current.room_id,
            'roomNumber': current.room.room_number,
            'roomType': current.room.room_type,
            'allocationDate': current.allocation_date.isoformat(),
        })
    return data
