"""
Validation policy - Pure checks on login, email and password shape.

Each validate_* function returns a ValidationResult and has no side effects.
The lifecycle service turns a failed result into a field-scoped
ValidationError. lang_key is deliberately not validated: unsupported tags are
replaced by the default language instead of being rejected.
"""

import re
from collections.abc import Iterable
from enum import Enum
from typing import NamedTuple

LOGIN_MIN_LENGTH = 3
LOGIN_MAX_LENGTH = 20
LOGIN_PATTERN = re.compile(r"^[a-z0-9_.@-]+$")

EMAIL_MAX_LENGTH = 254
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s.]+(\.[^@\s.]+)+$")

PASSWORD_MIN_LENGTH = 8
# bcrypt only reads the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72

NAME_MAX_LENGTH = 50


class Reason(str, Enum):
    """Reason codes attached to a failed validation."""

    REQUIRED = "required"
    BLANK = "blank"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_CHARACTERS = "invalid_characters"
    INVALID_FORMAT = "invalid_format"


class ValidationResult(NamedTuple):
    """Outcome of a single field check."""

    valid: bool
    reason: Reason | None = None


VALID = ValidationResult(True)


def _invalid(reason: Reason) -> ValidationResult:
    return ValidationResult(False, reason)


def normalize_login(login: str) -> str:
    """Logins are compared and stored lowercase."""
    return login.strip().lower()


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def validate_login(login: str | None) -> ValidationResult:
    if not login:
        return _invalid(Reason.REQUIRED)
    normalized = normalize_login(login)
    if len(normalized) < LOGIN_MIN_LENGTH:
        return _invalid(Reason.TOO_SHORT)
    if len(normalized) > LOGIN_MAX_LENGTH:
        return _invalid(Reason.TOO_LONG)
    if not LOGIN_PATTERN.match(normalized):
        return _invalid(Reason.INVALID_CHARACTERS)
    return VALID


def validate_email(email: str | None) -> ValidationResult:
    if not email:
        return _invalid(Reason.REQUIRED)
    normalized = normalize_email(email)
    if len(normalized) > EMAIL_MAX_LENGTH:
        return _invalid(Reason.TOO_LONG)
    if not EMAIL_PATTERN.match(normalized):
        return _invalid(Reason.INVALID_FORMAT)
    return VALID


def validate_password(password: str | None, min_length: int = PASSWORD_MIN_LENGTH) -> ValidationResult:
    """
    Check password shape.

    The plaintext is never stored: callers hash it right after a passing check.
    """
    if not password:
        return _invalid(Reason.REQUIRED)
    if not password.strip():
        return _invalid(Reason.BLANK)
    if len(password) < min_length:
        return _invalid(Reason.TOO_SHORT)
    if len(password.encode()) > PASSWORD_MAX_BYTES:
        return _invalid(Reason.TOO_LONG)
    return VALID


def validate_name(name: str | None) -> ValidationResult:
    """First and last names are optional but bounded."""
    if name is not None and len(name) > NAME_MAX_LENGTH:
        return _invalid(Reason.TOO_LONG)
    return VALID


def normalize_lang_key(lang_key: str | None, supported: Iterable[str], default: str) -> str:
    """
    Resolve a language tag to a supported key.

    Region subtags are dropped ("ru-RU" -> "ru"). Missing or unsupported
    tags fall back to the default instead of failing.
    """
    if not lang_key:
        return default
    primary = re.split(r"[-_]", lang_key.strip().lower(), maxsplit=1)[0]
    return primary if primary in set(supported) else default
