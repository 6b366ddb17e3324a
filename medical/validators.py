from django.core.exceptions import ValidationError
from django.utils import timezone


def validate_past_date(value):
    """
    The date must not be in the future.
    """
    if value > timezone.localdate():
        raise ValidationError("Date cannot be in the future.")
