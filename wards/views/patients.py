"""
Patient management views.

Intake creates patients; administrators edit and delete them.  Edits
that could break the occupancy rules (marking a patient DISCHARGED or
DECEASED, deleting them) go through the consistency gateway, which
refuses them while the patient still holds an ACTIVE allocation.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..models import Allocation, Patient
from ..permissions import IsWardStaffOrReadOnly
from ..serializers.patient import PatientSerializer, serialize_patient
from ..services.audit import log_action
from ..services.gateway import get_gateway
from .dashboard import invalidate_dashboard


def _active_by_patient(patient_ids) -> dict:
    qs = Allocation.objects.filter(status=Allocation.STATUS_ACTIVE, patient_id__in=patient_ids).select_related('room')
    return {a.patient_id: a for a in qs}


@api_view(['GET', 'POST'])
@permission_classes([IsWardStaffOrReadOnly])
def patients(request):
    if request.method == 'GET':
        qs = Patient.objects.order_by('-id')
        wanted = request.query_params.get('status')
        if wanted:
            qs = qs.filter(status=wanted)
        rows = list(qs)
        active = _active_by_patient([p.id for p in rows])
        return Response({'ok': True, 'data': [serialize_patient(p, active.get(p.id)) for p in rows]})

    data = PatientSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = get_gateway().repository.save_patient(Patient(**data.to_model_fields()))
    log_action(user=request.user, action='patient_create', object_type='patient', object_id=patient.id)
    invalidate_dashboard()
    return Response({'ok': True, 'data': serialize_patient(patient)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsWardStaffOrReadOnly])
def patient_detail(request, pk: int):
    gateway = get_gateway()
    if request.method == 'GET':
        patient = gateway.repository.get_patient(pk)
        current = Allocation.objects.select_related('room').filter(
            patient_id=pk, status=Allocation.STATUS_ACTIVE
        ).first()
        return Response({'ok': True, 'data': serialize_patient(patient, current)})

    if request.method == 'DELETE':
        gateway.delete_patient(pk)
        log_action(user=request.user, action='patient_delete', object_type='patient', object_id=pk)
        invalidate_dashboard()
        return Response({'ok': True})

    data = PatientSerializer(data=request.data, partial=True)
    data.is_valid(raise_exception=True)
    changes = data.to_model_fields()
    patient = gateway.update_patient(pk, changes)
    log_action(
        user=request.user, action='patient_update', object_type='patient', object_id=patient.id,
        detail={'fields': sorted(changes)},
    )
    invalidate_dashboard()
    return Response({'ok': True, 'data': serialize_patient(patient)})
