"""
Room management views.

Rooms are created and edited by administrators.  OCCUPIED is never set
by hand: it follows from allocations, and an occupied room cannot be
forced into another status or deleted until its patient is discharged.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..errors import ValidationError
from ..models import Room
from ..permissions import IsWardStaffOrReadOnly
from ..serializers.room import RoomSerializer, RoomStatusQuerySerializer, serialize_room
from ..services.audit import log_action
from ..services.gateway import get_gateway
from .dashboard import invalidate_dashboard


@api_view(['GET', 'POST'])
@permission_classes([IsWardStaffOrReadOnly])
def rooms(request):
    if request.method == 'GET':
        q = RoomStatusQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = Room.objects.order_by('room_number')
        if q.validated_data.get('status'):
            qs = qs.filter(status=q.validated_data['status'])
        if q.validated_data.get('type'):
            qs = qs.filter(room_type=q.validated_data['type'])
        return Response({'ok': True, 'data': [serialize_room(r) for r in qs]})

    data = RoomSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    fields = data.to_model_fields()
    if fields.get('status') == Room.STATUS_OCCUPIED:
        raise ValidationError('a new room cannot start OCCUPIED')
    room = get_gateway().repository.save_room(Room(**fields))
    log_action(user=request.user, action='room_create', object_type='room', object_id=room.id)
    invalidate_dashboard()
    return Response({'ok': True, 'data': serialize_room(room)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsWardStaffOrReadOnly])
def room_detail(request, pk: int):
    gateway = get_gateway()
    if request.method == 'GET':
        return Response({'ok': True, 'data': serialize_room(gateway.repository.get_room(pk))})

    if request.method == 'DELETE':
        gateway.delete_room(pk)
        log_action(user=request.user, action='room_delete', object_type='room', object_id=pk)
        invalidate_dashboard()
        return Response({'ok': True})

    data = RoomSerializer(data=request.data, partial=True)
    data.is_valid(raise_exception=True)
    changes = data.to_model_fields()
    room = gateway.update_room(pk, changes)
    log_action(
        user=request.user, action='room_update', object_type='room', object_id=room.id,
        detail={'fields': sorted(changes), 'status': room.status},
    )
    invalidate_dashboard()
    return Response({'ok': True, 'data': serialize_room(room)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_rooms(request):
    qs = Room.objects.filter(status=Room.STATUS_AVAILABLE).order_by('room_number')
    room_type = request.query_params.get('type')
    if room_type:
        qs = qs.filter(room_type=room_type)
    return Response({'ok': True, 'data': [serialize_room(r) for r in qs]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_room_count(request):
    return Response({'ok': True, 'data': Room.objects.filter(status=Room.STATUS_AVAILABLE).count()})
