"""
Database models for the ward management backend.

Three mutable records make up the domain: :class:`Patient`,
:class:`Room` and the :class:`Allocation` that binds one to the other.
Allocation is the owning side of the relationship; neither patients nor
rooms keep a pointer to their current stay.  "Is this room in use" is
always answered by looking for an ACTIVE allocation referencing it.
"""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django_prometheus.models import ExportModelOperationsMixin


class Patient(ExportModelOperationsMixin('patient'), models.Model):
    """A person admitted through intake.

    ``status`` is edited by administrators only; allocation actions read
    it but never change it.
    """
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_DISCHARGED = 'DISCHARGED'
    STATUS_DECEASED = 'DECEASED'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_DISCHARGED, 'Discharged'),
        (STATUS_DECEASED, 'Deceased'),
    )

    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=16, blank=True)
    blood_group = models.CharField(max_length=8, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class Room(ExportModelOperationsMixin('room'), models.Model):
    """A bookable room with a flat daily rate.

    OCCUPIED is derived from allocations; AVAILABLE, MAINTENANCE and
    RESERVED are set by administrators while the room is free.
    """
    STATUS_AVAILABLE = 'AVAILABLE'
    STATUS_OCCUPIED = 'OCCUPIED'
    STATUS_MAINTENANCE = 'MAINTENANCE'
    STATUS_RESERVED = 'RESERVED'
    STATUS_CHOICES = (
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_OCCUPIED, 'Occupied'),
        (STATUS_MAINTENANCE, 'Maintenance'),
        (STATUS_RESERVED, 'Reserved'),
    )

    TYPE_CHOICES = (
        ('SINGLE', 'Single'),
        ('DOUBLE', 'Double'),
        ('TRIPLE', 'Triple'),
        ('SUITE', 'Suite'),
        ('ICU', 'ICU'),
        ('EMERGENCY', 'Emergency'),
        ('OPERATION_THEATRE', 'Operation theatre'),
        ('WARD', 'Ward'),
    )

    room_number = models.CharField(max_length=32, unique=True)
    room_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default='SINGLE')
    floor = models.IntegerField(default=0)
    capacity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    # 房间状态常用于筛选可用房间，添加索引
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_AVAILABLE, db_index=True)
    price_per_day = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Room {self.room_number} ({self.status})"


class Allocation(ExportModelOperationsMixin('allocation'), models.Model):
    """One patient's stay, possibly spanning several rooms via transfer.

    ACTIVE is the only non-terminal state.  ``total_amount`` is fixed at
    discharge and stays empty for ACTIVE and CANCELLED allocations.
    """
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='allocations')
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='allocations')
    allocation_date = models.DateTimeField()
    discharge_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            # The store refuses a second ACTIVE allocation for the same
            # patient or room; repositories surface this as ConflictError.
            models.UniqueConstraint(
                fields=['patient'],
                condition=models.Q(status='ACTIVE'),
                name='uniq_active_allocation_per_patient',
            ),
            models.UniqueConstraint(
                fields=['room'],
                condition=models.Q(status='ACTIVE'),
                name='uniq_active_allocation_per_room',
            ),
        ]
        indexes = [
            models.Index(fields=['patient', 'allocation_date'], name='alloc_patient_date_idx'),
            models.Index(fields=['room', 'allocation_date'], name='alloc_room_date_idx'),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def __str__(self) -> str:
        return f"Allocation {self.pk}: p={self.patient_id} r={self.room_id} ({self.status})"


class AuditEvent(models.Model):
    """Append-only trail of allocation actions and admin edits."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}#{self.object_id}"
