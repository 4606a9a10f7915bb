"""
Password validators for ``AUTH_PASSWORD_VALIDATORS``.

The five strength rules are Django password validators so that every
entry point (the API, ``changepassword``, ``createsuperuser``, admin
forms) applies the same policy.
"""
import string

from django.contrib.auth import password_validation
from django.core.exceptions import ValidationError

MIN_LENGTH = 8
SYMBOLS = '!@#$%^&*'


class MinimumLengthValidator(password_validation.MinimumLengthValidator):
    def __init__(self, min_length=MIN_LENGTH):
        super().__init__(min_length=min_length)

    def validate(self, password, user=None):
        if len(password) < self.min_length:
            raise ValidationError(
                f'Password must be at least {self.min_length} characters',
                code='password_too_short',
            )

    def get_help_text(self):
        return f'Your password must contain at least {self.min_length} characters.'


class CharacterClassValidator:
    """Require at least one character from ``alphabet``."""
    alphabet = ''
    message = ''
    code = 'password_missing_character'

    def validate(self, password, user=None):
        if not any(c in self.alphabet for c in password):
            raise ValidationError(self.message, code=self.code)

    def get_help_text(self):
        return self.message.replace('Password must', 'Your password must') + '.'


class UppercaseValidator(CharacterClassValidator):
    alphabet = string.ascii_uppercase
    message = 'Password must contain at least one uppercase letter'
    code = 'password_no_upper'


class LowercaseValidator(CharacterClassValidator):
    alphabet = string.ascii_lowercase
    message = 'Password must contain at least one lowercase letter'
    code = 'password_no_lower'


class DigitValidator(CharacterClassValidator):
    alphabet = string.digits
    message = 'Password must contain at least one number'
    code = 'password_no_digit'


class SymbolValidator(CharacterClassValidator):
    message = 'Password must contain at least one special character'
    code = 'password_no_symbol'

    def __init__(self, symbols=SYMBOLS):
        self.alphabet = symbols
