"""
Database models for the MediCare backend.

A :class:`Hospital` is the tenant: every staff user and every clinical
row (patients, prescriptions, vitals, care notes) points at exactly one
hospital.  The platform super administrator is the only tenant-less
user.  Credential state (password history, reset tokens) lives next to
the user; refresh tokens are tracked by simplejwt's blacklist app.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from .errors import InvalidState
from .roles import Role


class Hospital(models.Model):
    """A hospital account, the unit of data isolation."""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending approval'
        ACTIVE = 'ACTIVE', 'Active'
        SUSPENDED = 'SUSPENDED', 'Suspended'
        INACTIVE = 'INACTIVE', 'Inactive'

    id = models.CharField(
        max_length=16,
        primary_key=True,
        help_text="Tenant identifier: hospital code plus four digits (e.g. 'CGH4821')",
    )
    name = models.CharField(max_length=255)
    domain = models.CharField(max_length=255, unique=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=32, blank=True)
    license_number = models.CharField(max_length=64, unique=True)
    address = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    activated_at = models.DateTimeField(null=True, blank=True)
    suspended_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class User(AbstractUser):
    """Staff or platform account.

    Roles are held in :class:`UserRole` rows so a user may carry more
    than one.  ``tenant`` is fixed once the user has been saved with a
    hospital; attempts to move a user to another hospital raise
    :class:`~hms.errors.InvalidState`.
    """
    tenant = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='users', db_index=True
    )
    # NULL rather than '' so the unique constraint ignores missing addresses
    email = models.EmailField(unique=True, null=True, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    department = models.CharField(max_length=128, blank=True)
    must_change_password = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    def save(self, *args, **kwargs):
        if not self.email:
            self.email = None
        update_fields = kwargs.get('update_fields')
        if self.pk and (update_fields is None or 'tenant' in update_fields):
            current = type(self).objects.filter(pk=self.pk).values_list('tenant_id', flat=True).first()
            if current is not None and current != self.tenant_id:
                raise InvalidState('A user cannot be moved to another hospital')
        super().save(*args, **kwargs)

    @property
    def roles(self) -> frozenset[Role]:
        return frozenset(Role(link.role) for link in self.role_links.all())

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def __str__(self) -> str:
        return self.username


class UserRole(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='role_links')
    role = models.CharField(max_length=20, choices=Role.choices)
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('user', 'role')]

    def __str__(self) -> str:
        return f"{self.user} as {self.role}"


class PasswordHistory(models.Model):
    """One row per password a user has held.  Rows are never edited."""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='password_history')
    password_hash = models.CharField(max_length=255)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'password history'

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise InvalidState('Password history entries are append-only')
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.user} @ {self.created_at:%Y-%m-%d %H:%M}"


class PasswordResetToken(models.Model):
    """Single-use recovery credential.

    Only a SHA-256 digest of the emailed token is stored.  A token that
    was replaced by a newer one is ``is_used`` with no ``used_at``.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reset_tokens')
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    is_used = models.BooleanField(default=False, db_index=True)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    @property
    def status(self) -> str:
        if self.is_used:
            return 'used' if self.used_at else 'superseded'
        if self.expires_at <= timezone.now():
            return 'expired'
        return 'issued'

    def __str__(self) -> str:
        return f"reset token for {self.user} ({self.status})"


class EmailOtp(models.Model):
    """Short numeric code emailed to prove control of an address.

    Only a digest of the code is kept.  Issuing a new code for the same
    address and purpose retires the earlier ones.
    """
    class Purpose(models.TextChoices):
        HOSPITAL_REGISTRATION = 'HOSPITAL_REGISTRATION', 'Hospital registration'

    email = models.EmailField(db_index=True)
    purpose = models.CharField(max_length=32, choices=Purpose.choices)
    code_hash = models.CharField(max_length=64)
    expires_at = models.DateTimeField()
    is_used = models.BooleanField(default=False, db_index=True)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.get_purpose_display()} code for {self.email}"


class Patient(models.Model):
    class Gender(models.TextChoices):
        MALE = 'MALE', 'Male'
        FEMALE = 'FEMALE', 'Female'
        OTHER = 'OTHER', 'Other'

    class PatientType(models.TextChoices):
        OPD = 'OPD', 'Outpatient'
        IPD = 'IPD', 'Inpatient'

    tenant = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='patients')
    patient_id = models.CharField(max_length=32, help_text="Display identifier, e.g. 'CGH-P-0001'")
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=8, choices=Gender.choices, blank=True)
    blood_group = models.CharField(max_length=8, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=128, blank=True)
    state = models.CharField(max_length=128, blank=True)
    pincode = models.CharField(max_length=16, blank=True)
    emergency_contact_name = models.CharField(max_length=255, blank=True)
    emergency_contact_phone = models.CharField(max_length=32, blank=True)
    emergency_contact_relation = models.CharField(max_length=64, blank=True)
    patient_type = models.CharField(max_length=4, choices=PatientType.choices, default=PatientType.OPD, db_index=True)
    department = models.CharField(max_length=128, blank=True)
    photo_url = models.URLField(max_length=500, blank=True)
    is_discharged = models.BooleanField(default=False, db_index=True)
    discharged_at = models.DateTimeField(null=True, blank=True)
    discharged_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='discharged_patients'
    )
    discharge_notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='registered_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'patient_id'], name='uniq_patient_display_id'),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.patient_id} {self.full_name}"


class Prescription(models.Model):
    tenant = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='prescriptions')
    prescription_id = models.CharField(max_length=32, help_text="Display identifier, e.g. 'CGH-RX-0001'")
    # RESTRICT: a patient with prescriptions cannot be removed on its own
    patient = models.ForeignKey(Patient, on_delete=models.RESTRICT, related_name='prescriptions')
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions_written'
    )
    diagnosis = models.TextField()
    notes = models.TextField(blank=True)
    medicines = models.JSONField(default=list, blank=True)
    is_dispensed = models.BooleanField(default=False, db_index=True)
    dispensed_at = models.DateTimeField(null=True, blank=True)
    dispensed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions_dispensed'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'prescription_id'], name='uniq_prescription_display_id'),
        ]

    def __str__(self) -> str:
        return self.prescription_id


class Vital(models.Model):
    tenant = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='vitals')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='vitals')
    blood_pressure_systolic = models.PositiveSmallIntegerField(null=True, blank=True)
    blood_pressure_diastolic = models.PositiveSmallIntegerField(null=True, blank=True)
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    pulse = models.PositiveSmallIntegerField(null=True, blank=True)
    spo2 = models.PositiveSmallIntegerField(null=True, blank=True)
    weight = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='vitals_recorded'
    )
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-recorded_at']


class CareNote(models.Model):
    tenant = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='care_notes')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='care_notes')
    nurse = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='care_notes_written'
    )
    note = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']


class TenantSequence(models.Model):
    """Per-hospital counter backing the display identifiers."""
    tenant = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='sequences')
    kind = models.CharField(max_length=16)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = [('tenant', 'kind')]

    def __str__(self) -> str:
        return f"{self.tenant_id}:{self.kind}={self.last_value}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    tenant = models.ForeignKey(Hospital, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='hms_auditev_action_5f1c2b_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='hms_auditev_object__8d3e41_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.object_type}:{self.object_id}"
