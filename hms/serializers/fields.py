import bleach
from rest_framework import serializers


def clean_text(value: str) -> str:
    return bleach.clean((value or '').strip(), tags=[], strip=True)


class CleanCharField(serializers.CharField):
    """CharField that strips markup from free text before it is stored."""

    def to_internal_value(self, data):
        return clean_text(super().to_internal_value(data))
