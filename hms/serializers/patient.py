from rest_framework import serializers

from hms.models import Patient
from .fields import CleanCharField


class PatientCreateSerializer(serializers.Serializer):
    firstName = CleanCharField(source='first_name', max_length=128)
    lastName = CleanCharField(source='last_name', max_length=128)
    dateOfBirth = serializers.DateField(source='date_of_birth', required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=Patient.Gender.choices, required=False, allow_blank=True)
    bloodGroup = CleanCharField(source='blood_group', required=False, allow_blank=True, max_length=8)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = CleanCharField(max_length=32)
    address = CleanCharField(required=False, allow_blank=True)
    city = CleanCharField(required=False, allow_blank=True, max_length=128)
    state = CleanCharField(required=False, allow_blank=True, max_length=128)
    pincode = CleanCharField(required=False, allow_blank=True, max_length=16)
    emergencyContactName = CleanCharField(source='emergency_contact_name', required=False, allow_blank=True,
                                          max_length=255)
    emergencyContactPhone = CleanCharField(source='emergency_contact_phone', required=False, allow_blank=True,
                                           max_length=32)
    emergencyContactRelation = CleanCharField(source='emergency_contact_relation', required=False,
                                              allow_blank=True, max_length=64)
    patientType = serializers.ChoiceField(source='patient_type', choices=Patient.PatientType.choices,
                                          required=False)
    department = CleanCharField(required=False, allow_blank=True, max_length=128)
    photoUrl = serializers.URLField(source='photo_url', required=False, allow_blank=True, max_length=500)


class PatientContactSerializer(serializers.Serializer):
    phone = CleanCharField(required=False, max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = CleanCharField(required=False, allow_blank=True)
    city = CleanCharField(required=False, allow_blank=True, max_length=128)
    state = CleanCharField(required=False, allow_blank=True, max_length=128)
    pincode = CleanCharField(required=False, allow_blank=True, max_length=16)
    photoUrl = serializers.URLField(source='photo_url', required=False, allow_blank=True, max_length=500)


class DischargeSerializer(serializers.Serializer):
    dischargeNotes = CleanCharField(source='notes', required=False, allow_blank=True, default='')


class VitalSerializer(serializers.Serializer):
    bloodPressureSystolic = serializers.IntegerField(source='blood_pressure_systolic', required=False,
                                                     allow_null=True, min_value=40, max_value=300)
    bloodPressureDiastolic = serializers.IntegerField(source='blood_pressure_diastolic', required=False,
                                                      allow_null=True, min_value=20, max_value=200)
    temperature = serializers.DecimalField(max_digits=4, decimal_places=1, required=False, allow_null=True,
                                           min_value=25, max_value=45)
    pulse = serializers.IntegerField(required=False, allow_null=True, min_value=20, max_value=250)
    spo2 = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100)
    weight = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True,
                                      min_value=0)
    notes = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        measured = ('blood_pressure_systolic', 'blood_pressure_diastolic', 'temperature', 'pulse', 'spo2',
                    'weight')
        if all(attrs.get(name) is None for name in measured):
            raise serializers.ValidationError('At least one measurement is required')
        return attrs


class CareNoteSerializer(serializers.Serializer):
    note = CleanCharField()
