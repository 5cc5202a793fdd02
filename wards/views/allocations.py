"""
Allocation views.

Every state change (allocate, discharge, cancel, transfer) is delegated
to the consistency gateway; these views only validate input, record an
audit event and render the result.  Reads go straight to the ORM.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..errors import NotFoundError
from ..models import Allocation
from ..permissions import IsWardStaff, IsWardStaffOrReadOnly
from ..serializers.allocation import (
    AllocationCreateSerializer,
    DischargeSerializer,
    TransferSerializer,
    serialize_allocation,
)
from ..services.audit import history_for, log_action
from ..services.gateway import get_gateway
from .dashboard import invalidate_dashboard


def _rows(qs):
    return [serialize_allocation(a) for a in qs.select_related('patient', 'room')]


def _fresh(allocation_id) -> dict:
    return serialize_allocation(
        Allocation.objects.select_related('patient', 'room').get(pk=allocation_id)
    )


def _done(request, action: str, allocation: Allocation, **detail):
    log_action(
        user=request.user, action=f'allocation_{action}', object_type='allocation',
        object_id=allocation.pk, detail=detail,
    )
    invalidate_dashboard()
    return _fresh(allocation.pk)


@api_view(['GET', 'POST'])
@permission_classes([IsWardStaffOrReadOnly])
def allocations(request):
    if request.method == 'GET':
        qs = Allocation.objects.order_by('-allocation_date', '-id')
        wanted = request.query_params.get('status')
        if wanted:
            qs = qs.filter(status=wanted)
        return Response({'ok': True, 'data': _rows(qs)})

    data = AllocationCreateSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    v = data.validated_data
    allocation = get_gateway().allocate(
        v['patientId'], v['roomId'],
        allocation_date=v.get('allocationDate'),
        notes=v.get('notes', ''),
    )
    payload = _done(request, 'allocate', allocation, patientId=v['patientId'], roomId=v['roomId'])
    return Response({'ok': True, 'data': payload}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def active_allocations(request):
    qs = Allocation.objects.filter(status=Allocation.STATUS_ACTIVE).order_by('-allocation_date', '-id')
    return Response({'ok': True, 'data': _rows(qs)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def allocation_detail(request, pk: int):
    allocation = Allocation.objects.select_related('patient', 'room').filter(pk=pk).first()
    if allocation is None:
        raise NotFoundError(f'allocation {pk} not found')
    data = serialize_allocation(allocation)
    data['auditTrail'] = history_for('allocation', allocation.pk)
    return Response({'ok': True, 'data': data})


@api_view(['PUT'])
@permission_classes([IsWardStaff])
def discharge(request, pk: int):
    data = DischargeSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    allocation = get_gateway().discharge(pk, data.validated_data.get('dischargeDate'))
    payload = _done(request, 'discharge', allocation, totalAmount=str(allocation.total_amount))
    return Response({'ok': True, 'data': payload})


@api_view(['PUT'])
@permission_classes([IsWardStaff])
def cancel(request, pk: int):
    allocation = get_gateway().cancel(pk)
    return Response({'ok': True, 'data': _done(request, 'cancel', allocation)})


@api_view(['PUT'])
@permission_classes([IsWardStaff])
def transfer(request, pk: int):
    data = TransferSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    new_room_id = data.validated_data['newRoomId']
    allocation = get_gateway().transfer(pk, new_room_id)
    return Response({'ok': True, 'data': _done(request, 'transfer', allocation, roomId=new_room_id)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bill(request, pk: int):
    return Response({'ok': True, 'data': get_gateway().bill(pk).as_dict()})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_current(request, patient_id: int):
    allocation = Allocation.objects.select_related('patient', 'room').filter(
        patient_id=patient_id, status=Allocation.STATUS_ACTIVE
    ).first()
    if allocation is None:
        raise NotFoundError(f'patient {patient_id} has no active allocation')
    return Response({'ok': True, 'data': serialize_allocation(allocation)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_history(request, patient_id: int):
    qs = Allocation.objects.filter(patient_id=patient_id).order_by('-allocation_date', '-id')
    return Response({'ok': True, 'data': _rows(qs)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def room_current(request, room_id: int):
    allocation = Allocation.objects.select_related('patient', 'room').filter(
        room_id=room_id, status=Allocation.STATUS_ACTIVE
    ).first()
    if allocation is None:
        raise NotFoundError(f'room {room_id} has no active allocation')
    return Response({'ok': True, 'data': serialize_allocation(allocation)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def room_history(request, room_id: int):
    qs = Allocation.objects.filter(room_id=room_id).order_by('-allocation_date', '-id')
    return Response({'ok': True, 'data': _rows(qs)})
