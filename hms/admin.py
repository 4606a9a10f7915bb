"""
Django admin registrations for the hms models.

Credential rows (password history, reset tokens, email codes) are
read-only here; they are only ever written by the services.  Rows that
belong to a hospital cannot be moved to another one.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    CareNote,
    EmailOtp,
    Hospital,
    PasswordHistory,
    PasswordResetToken,
    Patient,
    Prescription,
    TenantSequence,
    User,
    UserRole,
    Vital,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class TenantLockedAdmin(admin.ModelAdmin):
    """Rows keep the hospital they were created in."""

    def get_readonly_fields(self, request, obj=None):
        fields = tuple(super().get_readonly_fields(request, obj))
        if obj is not None:
            fields += ('tenant',)
        return fields


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'domain', 'status', 'activated_at', 'created_at')
    list_filter = ('status',)
    search_fields = ('id', 'name', 'domain', 'email', 'license_number')


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0


@admin.register(User)
class UserAdmin(TenantLockedAdmin):
    list_display = ('username', 'email', 'tenant', 'must_change_password', 'is_active', 'last_login')
    list_filter = ('tenant', 'is_active', 'must_change_password')
    search_fields = ('username', 'email', 'first_name', 'last_name')
    exclude = ('password',)
    inlines = [UserRoleInline]


@admin.register(PasswordHistory)
class PasswordHistoryAdmin(ReadOnlyAdmin):
    list_display = ('user', 'created_at')
    search_fields = ('user__username',)
    exclude = ('password_hash',)


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(ReadOnlyAdmin):
    list_display = ('user', 'status', 'expires_at', 'used_at', 'created_at')
    list_filter = ('is_used',)
    search_fields = ('user__username', 'user__email')
    exclude = ('token_hash',)


@admin.register(EmailOtp)
class EmailOtpAdmin(ReadOnlyAdmin):
    list_display = ('email', 'purpose', 'is_used', 'expires_at', 'used_at', 'created_at')
    list_filter = ('purpose', 'is_used')
    search_fields = ('email',)
    exclude = ('code_hash',)


@admin.register(Patient)
class PatientAdmin(TenantLockedAdmin):
    list_display = ('patient_id', 'first_name', 'last_name', 'tenant', 'patient_type', 'is_discharged')
    list_filter = ('tenant', 'patient_type', 'is_discharged')
    search_fields = ('patient_id', 'first_name', 'last_name', 'phone')


@admin.register(Prescription)
class PrescriptionAdmin(TenantLockedAdmin):
    list_display = ('prescription_id', 'patient', 'doctor', 'tenant', 'is_dispensed', 'created_at')
    list_filter = ('tenant', 'is_dispensed')
    search_fields = ('prescription_id', 'patient__patient_id', 'diagnosis')


@admin.register(Vital)
class VitalAdmin(TenantLockedAdmin):
    list_display = ('patient', 'tenant', 'pulse', 'spo2', 'temperature', 'recorded_at')
    list_filter = ('tenant',)


@admin.register(CareNote)
class CareNoteAdmin(TenantLockedAdmin):
    list_display = ('patient', 'tenant', 'nurse', 'created_at')
    list_filter = ('tenant',)


@admin.register(TenantSequence)
class TenantSequenceAdmin(ReadOnlyAdmin):
    list_display = ('tenant', 'kind', 'last_value')


@admin.register(AuditEvent)
class AuditEventAdmin(ReadOnlyAdmin):
    list_display = ('action', 'user', 'tenant', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('user__username', 'object_id')
