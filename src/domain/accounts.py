"""
Account data model - entity, transient requests and public projection.

Lifecycle (derived from the stored flags):
    PENDING        not activated, activation_key set
    ACTIVE         activated, no reset pending
    RESET_PENDING  activated, reset_key/reset_date set

Transitions:
    PENDING -> ACTIVE              activate(key), key is cleared
    ACTIVE -> RESET_PENDING        request_password_reset()
    RESET_PENDING -> ACTIVE        reset_password(key, new_password)

A RESET_PENDING account whose reset window has elapsed behaves as ACTIVE:
the key stays stored but is rejected at redemption time.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

ROLE_USER = "ROLE_USER"
ROLE_ADMIN = "ROLE_ADMIN"

# Fields a profile update may touch. Everything else in a payload is dropped.
PROFILE_FIELDS = ("first_name", "last_name", "email", "lang_key")


class AccountState(str, Enum):
    """Lifecycle state of an account, derived from its flags."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    RESET_PENDING = "RESET_PENDING"


class NotificationKind(str, Enum):
    """Transactional email events."""

    ACTIVATION = "activation"
    CREATION = "creation"
    PASSWORD_RESET = "password_reset"


@dataclass
class Account:
    """Stored account entity."""

    login: str
    email: str
    password_hash: str
    first_name: str | None = None
    last_name: str | None = None
    lang_key: str = "en"
    authorities: frozenset[str] = frozenset()
    activated: bool = False
    activation_key: str | None = None
    reset_key: str | None = None
    reset_date: datetime | None = None
    register_date: datetime | None = None
    id: int | None = None

    @property
    def state(self) -> AccountState:
        if not self.activated:
            return AccountState.PENDING
        if self.reset_key is not None:
            return AccountState.RESET_PENDING
        return AccountState.ACTIVE

    def public_view(self) -> "PublicAccount":
        """Project the fields that are safe to hand back to a caller."""
        return PublicAccount(
            id=self.id,
            login=self.login,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            lang_key=self.lang_key,
            authorities=self.authorities,
            activated=self.activated,
            register_date=self.register_date,
        )


@dataclass(frozen=True)
class PublicAccount:
    """Public projection of an account: no password hash, no raw keys."""

    id: int | None
    login: str
    email: str
    first_name: str | None
    last_name: str | None
    lang_key: str
    authorities: frozenset[str]
    activated: bool
    register_date: datetime | None


@dataclass(frozen=True)
class RegistrationRequest:
    """Self-service registration input. The password is hashed and dropped."""

    login: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    lang_key: str | None = None


@dataclass(frozen=True)
class AccountCreation:
    """Administrative account creation input."""

    login: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    lang_key: str | None = None
    authorities: frozenset[str] = field(default_factory=lambda: frozenset({ROLE_USER}))


@dataclass(frozen=True)
class ProfileUpdate:
    """
    Profile fields a caller may change on an account.

    None means "leave unchanged". Build instances with filter_profile_update()
    so that privileged fields never reach the service.
    """

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    lang_key: str | None = None


def filter_profile_update(payload: Mapping[str, Any]) -> ProfileUpdate:
    """
    Build a ProfileUpdate from an untrusted payload.

    Only PROFILE_FIELDS are copied. authorities, login, password, activation
    flags and keys are dropped whatever their value, so neither the
    self-service nor the admin update path can change roles.
    """
    dropped = sorted(key for key in payload if key not in PROFILE_FIELDS)
    if "authorities" in dropped:
        logger.warning("Ignoring authorities in profile update payload")
    elif dropped:
        logger.debug("Ignoring non-profile fields in update payload: %s", dropped)

    return ProfileUpdate(**{key: payload[key] for key in PROFILE_FIELDS if key in payload})
