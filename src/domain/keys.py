"""
Key generation for activation and password-reset tokens.
"""

import secrets
import string

KEY_ALPHABET = string.ascii_letters + string.digits
KEY_LENGTH = 20


def generate_key(length: int = KEY_LENGTH) -> str:
    """
    Generate an unguessable alphanumeric key.

    Uses the secrets module for cryptographic randomness. Keys are never
    derived from account data.
    """
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))
