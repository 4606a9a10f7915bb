from rest_framework import serializers

from hms.roles import Role
from .fields import CleanCharField


class StaffCreateSerializer(serializers.Serializer):
    firstName = CleanCharField(source='first_name', max_length=150)
    lastName = CleanCharField(source='last_name', max_length=150)
    email = serializers.EmailField()
    phone = CleanCharField(required=False, allow_blank=True, max_length=32)
    department = CleanCharField(required=False, allow_blank=True, max_length=128)
    roles = serializers.ListField(child=serializers.ChoiceField(choices=Role.choices), allow_empty=False)


class HospitalRegisterSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    domain = serializers.RegexField(r'^[A-Za-z0-9.-]+\.[A-Za-z]{2,}$', max_length=255)
    email = serializers.EmailField()
    phone = CleanCharField(required=False, allow_blank=True, max_length=32)
    licenseNumber = CleanCharField(source='license_number', max_length=64)
    address = CleanCharField(required=False, allow_blank=True)
    adminFirstName = CleanCharField(source='admin_first_name', max_length=150)
    adminLastName = CleanCharField(source='admin_last_name', max_length=150)
    adminEmail = serializers.EmailField(source='admin_email')
    adminPhone = CleanCharField(source='admin_phone', required=False, allow_blank=True, max_length=32)
    adminPassword = serializers.CharField(source='admin_password', trim_whitespace=False)
    otpCode = serializers.RegexField(r'^\d{6}$', source='otp_code', max_length=6,
                                     error_messages={'invalid': 'Enter the 6 digit code sent to the admin email'})


class HospitalOtpSerializer(serializers.Serializer):
    adminEmail = serializers.EmailField(source='admin_email')


class HospitalUpdateSerializer(serializers.Serializer):
    name = CleanCharField(required=False, min_length=2, max_length=255)
    email = serializers.EmailField(required=False)
    phone = CleanCharField(required=False, allow_blank=True, max_length=32)
    address = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        return attrs


class HospitalStatusSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'suspend', 'reactivate', 'deactivate'])
