from rest_framework import serializers

from .fields import CleanCharField


class MedicineSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    dosage = CleanCharField(required=False, allow_blank=True, max_length=128)
    frequency = CleanCharField(required=False, allow_blank=True, max_length=128)
    duration = CleanCharField(required=False, allow_blank=True, max_length=128)
    instructions = CleanCharField(required=False, allow_blank=True)


class PrescriptionCreateSerializer(serializers.Serializer):
    diagnosis = CleanCharField()
    notes = CleanCharField(required=False, allow_blank=True)
    medicines = MedicineSerializer(many=True, allow_empty=False)
