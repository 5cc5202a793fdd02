"""
Django admin registrations for the ward models.

Occupancy is owned by the consistency gateway, so the admin never writes
it directly: room and allocation status are read-only, allocations are
created through the API only, and deletes of patients and rooms are
routed through :func:`~wards.services.gateway.get_gateway` so they are
refused while an ACTIVE allocation references the record.
"""

from django import forms
from django.contrib import admin, messages

from .errors import ConflictError
from .models import Allocation, AuditEvent, Patient, Room
from .services import engine
from .services.gateway import get_gateway


def _active_allocation(**match):
    return Allocation.objects.filter(status=Allocation.STATUS_ACTIVE, **match).first()


class PatientAdminForm(forms.ModelForm):
    class Meta:
        model = Patient
        fields = '__all__'

    def clean_status(self):
        status = self.cleaned_data['status']
        if self.instance.pk:
            try:
                engine.check_patient_status_change(
                    self.instance, status, _active_allocation(patient_id=self.instance.pk)
                )
            except ConflictError as exc:
                raise forms.ValidationError(exc.message)
        return status


class GatewayDeleteMixin:
    """Deletes go through the gateway; records with an ACTIVE stay are kept."""
    kind = ''

    def _gateway_delete(self, pk):
        raise NotImplementedError

    def has_delete_permission(self, request, obj=None):
        if obj is not None and _active_allocation(**{self.kind: obj}) is not None:
            return False
        return super().has_delete_permission(request, obj)

    def delete_model(self, request, obj):
        self._gateway_delete(obj.pk)

    def delete_queryset(self, request, queryset):
        for obj in queryset:
            try:
                self._gateway_delete(obj.pk)
            except ConflictError as exc:
                self.message_user(request, f'{obj}: {exc.message}', messages.ERROR)


@admin.register(Patient)
class PatientAdmin(GatewayDeleteMixin, admin.ModelAdmin):
    form = PatientAdminForm
    kind = 'patient'
    list_display = ('id', 'name', 'email', 'status', 'created_at')
    list_filter = ('status', 'gender')
    search_fields = ('name', 'email', 'phone')

    def _gateway_delete(self, pk):
        get_gateway().delete_patient(pk)

    def save_model(self, request, obj, form, change):
        if not change:
            return super().save_model(request, obj, form, change)
        # Re-checked under the patient lock.
        changes = {name: form.cleaned_data[name] for name in form.changed_data}
        get_gateway().update_patient(obj.pk, changes)


@admin.register(Room)
class RoomAdmin(GatewayDeleteMixin, admin.ModelAdmin):
    kind = 'room'
    list_display = ('room_number', 'room_type', 'floor', 'status', 'price_per_day')
    list_filter = ('status', 'room_type', 'floor')
    search_fields = ('room_number',)
    # 状态由分配决定，使用 API 修改
    readonly_fields = ('status',)

    def _gateway_delete(self, pk):
        get_gateway().delete_room(pk)

    def save_model(self, request, obj, form, change):
        if not change:
            return super().save_model(request, obj, form, change)
        changes = {name: form.cleaned_data[name] for name in form.changed_data}
        get_gateway().update_room(obj.pk, changes)


@admin.register(Allocation)
class AllocationAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'room', 'status', 'allocation_date', 'discharge_date', 'total_amount')
    list_filter = ('status',)
    search_fields = ('patient__name', 'room__room_number')
    readonly_fields = ('patient', 'room', 'status', 'total_amount')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_active:
            return False
        return super().has_delete_permission(request, obj)

    def delete_queryset(self, request, queryset):
        active = queryset.filter(status=Allocation.STATUS_ACTIVE)
        if active.exists():
            self.message_user(request, f'{active.count()} ACTIVE allocation(s) kept; discharge or cancel them first',
                              messages.ERROR)
        queryset.exclude(status=Allocation.STATUS_ACTIVE).delete()


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
