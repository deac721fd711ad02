"""
Account lifecycle service - registration, activation, credentials and profile.

State machine (see accounts.py for how states derive from stored flags):

    PENDING --activate(key)--> ACTIVE
    ACTIVE --request_password_reset()--> RESET_PENDING
    RESET_PENDING --reset_password(key, new_password)--> ACTIVE

Activation and reset keys are single use. The repository redeems them with
an atomic check-and-clear, so two concurrent redemptions of the same key
cannot both succeed. A reset key older than the reset window is rejected at
redemption time; it is not purged ahead of time.

Every operation persists first and notifies after. Notification failures are
logged and never undo or fail the transition.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from functools import cached_property
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt

from .accounts import (
    ROLE_USER,
    Account,
    AccountCreation,
    NotificationKind,
    ProfileUpdate,
    PublicAccount,
    RegistrationRequest,
    filter_profile_update,
)
from .exceptions import DuplicateEmail, DuplicateLogin, InvalidOrExpiredKey, NotFound, ValidationError
from .keys import generate_key
from .ports import AccountRepository, Notifier
from .validation import (
    PASSWORD_MAX_BYTES,
    PASSWORD_MIN_LENGTH,
    ValidationResult,
    normalize_email,
    normalize_lang_key,
    normalize_login,
    validate_email,
    validate_login,
    validate_name,
    validate_password,
)

logger = logging.getLogger(__name__)

# Random password given to admin-created accounts until the owner sets one
# through the reset key sent in the creation email.
_GENERATED_PASSWORD_LENGTH = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountService:
    """
    Domain service for the account lifecycle.

    Orchestrates validation, key generation, persistence and notification.
    Holds no per-account state between calls.
    """

    repository: AccountRepository
    notifier: Notifier
    default_lang_key: str = "en"
    supported_lang_keys: Iterable[str] = ("en",)
    password_min_length: int = PASSWORD_MIN_LENGTH
    reset_key_ttl: timedelta = timedelta(hours=24)
    bcrypt_cost: int = 10
    clock: Callable[[], datetime] = _utcnow

    def register(self, request: RegistrationRequest) -> PublicAccount:
        """
        Register a new account in PENDING state and send the activation email.

        Args:
            request: Registration input (password is hashed, then dropped)

        Returns:
            Public projection of the created account

        Raises:
            ValidationError: First field that fails the validation policy
            DuplicateLogin: Login already taken (any case)
            DuplicateEmail: Email already taken
        """
        self._check("login", validate_login(request.login))
        self._check("email", validate_email(request.email))
        self._check("password", validate_password(request.password, self.password_min_length))
        self._check("first_name", validate_name(request.first_name))
        self._check("last_name", validate_name(request.last_name))

        login = normalize_login(request.login)
        email = normalize_email(request.email)
        self._ensure_available(login, email)

        account = Account(
            login=login,
            email=email,
            password_hash=self._hash_password(request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            lang_key=self._resolve_lang_key(request.lang_key),
            authorities=frozenset({ROLE_USER}),
            activated=False,
            activation_key=generate_key(),
            register_date=self.clock(),
        )
        account = self.repository.save(account)
        logger.info("Registered account %s, pending activation", login)

        self._notify(account, NotificationKind.ACTIVATION)
        return account.public_view()

    def activate(self, key: str) -> PublicAccount:
        """
        Redeem an activation key.

        Raises:
            InvalidOrExpiredKey: No pending account holds the key (unknown or already used)
        """
        account = self.repository.activate(key) if key else None
        if account is None:
            raise InvalidOrExpiredKey()

        logger.info("Activated account %s", account.login)
        return account.public_view()

    def request_password_reset(self, email_or_login: str) -> None:
        """
        Issue a reset key and email it to the account's registered address.

        Reports nothing back: unknown and not-yet-activated accounts are a
        silent no-op so callers cannot tell which accounts exist.
        """
        value = (email_or_login or "").strip()
        account = None
        if value:
            account = self.repository.find_by_email(normalize_email(value))
            if account is None:
                account = self.repository.find_by_login(normalize_login(value))

        if account is None or not account.activated:
            logger.info("Password reset requested for unknown or inactive account")
            return

        key = generate_key()
        issued_at = self.clock()
        if not self.repository.start_password_reset(account.id, key, issued_at):
            logger.info("Account %s disappeared before reset key was stored", account.login)
            return

        account = replace(account, reset_key=key, reset_date=issued_at)
        logger.info("Issued password reset key for account %s", account.login)
        self._notify(account, NotificationKind.PASSWORD_RESET)

    def reset_password(self, key: str, new_password: str) -> PublicAccount:
        """
        Redeem a reset key and set a new password.

        Raises:
            InvalidOrExpiredKey: Key unknown, already used, or older than the reset window
            ValidationError: New password fails the validation policy
        """
        issued_after = self.clock() - self.reset_key_ttl
        account = self.repository.find_by_reset_key(key) if key else None
        if account is None or account.reset_date is None or account.reset_date < issued_after:
            raise InvalidOrExpiredKey()

        self._check("password", validate_password(new_password, self.password_min_length))
        password_hash = self._hash_password(new_password)

        account = self.repository.complete_password_reset(key, password_hash, issued_after)
        if account is None:
            raise InvalidOrExpiredKey()

        logger.info("Password reset completed for account %s", account.login)
        return account.public_view()

    def change_password(self, account_id: int, new_password: str) -> None:
        """
        Set a new password for the authenticated caller's own account.

        Raises:
            NotFound: No account with this id
            ValidationError: New password fails the validation policy
        """
        account = self._require(account_id)
        self._check("password", validate_password(new_password, self.password_min_length))

        if not self.repository.update_password(account.id, self._hash_password(new_password)):
            raise NotFound(account_id)
        logger.info("Password changed for account %s", account.login)

    def update_own_profile(
        self, account_id: int, update: Mapping[str, Any] | ProfileUpdate
    ) -> PublicAccount:
        """
        Apply a self-service profile update.

        Only first_name, last_name, email and lang_key are applied. Any
        authorities value in the input is dropped.

        Raises:
            NotFound: No account with this id
            ValidationError: A supplied field fails the validation policy
            DuplicateEmail: New email already used by another account
        """
        return self._apply_profile_update(self._require(account_id), update)

    def update_account(self, login: str, update: Mapping[str, Any] | ProfileUpdate) -> PublicAccount:
        """
        Administrative profile update of another account.

        Uses the same field filter as update_own_profile: roles are not
        settable through this path.
        """
        return self._apply_profile_update(self._require_login(login), update)

    def create_account(self, creation: AccountCreation) -> PublicAccount:
        """
        Administrative account creation.

        The account starts activated with a random password and a fresh reset
        key; the creation email carries the link to choose a password.
        """
        self._check("login", validate_login(creation.login))
        self._check("email", validate_email(creation.email))
        self._check("first_name", validate_name(creation.first_name))
        self._check("last_name", validate_name(creation.last_name))

        login = normalize_login(creation.login)
        email = normalize_email(creation.email)
        self._ensure_available(login, email)

        now = self.clock()
        account = Account(
            login=login,
            email=email,
            password_hash=self._hash_password(generate_key(_GENERATED_PASSWORD_LENGTH)),
            first_name=creation.first_name,
            last_name=creation.last_name,
            lang_key=self._resolve_lang_key(creation.lang_key),
            authorities=frozenset(creation.authorities),
            activated=True,
            reset_key=generate_key(),
            reset_date=now,
            register_date=now,
        )
        account = self.repository.save(account)
        logger.info("Created account %s with authorities %s", login, sorted(account.authorities))

        self._notify(account, NotificationKind.CREATION)
        return account.public_view()

    def delete_account(self, login: str) -> None:
        """Administrative deletion. Raises NotFound for an unknown login."""
        account = self._require_login(login)
        if not self.repository.delete(account.id):
            raise NotFound(login)
        logger.info("Deleted account %s", account.login)

    def get_account(self, account_id: int) -> PublicAccount:
        return self._require(account_id).public_view()

    def get_account_by_login(self, login: str) -> PublicAccount:
        return self._require_login(login).public_view()

    def authenticate(self, login: str, password: str) -> PublicAccount | None:
        """
        Check credentials of an activated account.

        bcrypt runs for unknown logins too, against a dummy hash, so response
        time does not reveal whether the login exists.

        Returns:
            Public projection on success, None on any failure
        """
        account = self.repository.find_by_login(normalize_login(login or ""))
        stored_hash = account.password_hash if account is not None else self._dummy_hash

        candidate = (password or "").encode()
        password_valid = bcrypt.checkpw(candidate[:PASSWORD_MAX_BYTES], stored_hash.encode())
        password_valid = password_valid and len(candidate) <= PASSWORD_MAX_BYTES

        if account is None or not account.activated or not password_valid:
            return None
        return account.public_view()

    def _apply_profile_update(
        self, account: Account, update: Mapping[str, Any] | ProfileUpdate
    ) -> PublicAccount:
        if not isinstance(update, ProfileUpdate):
            update = filter_profile_update(update)

        self._check("first_name", validate_name(update.first_name))
        self._check("last_name", validate_name(update.last_name))

        changes: dict[str, Any] = {}
        if update.first_name is not None:
            changes["first_name"] = update.first_name
        if update.last_name is not None:
            changes["last_name"] = update.last_name
        if update.lang_key is not None:
            changes["lang_key"] = self._resolve_lang_key(update.lang_key)
        if update.email is not None:
            self._check("email", validate_email(update.email))
            email = normalize_email(update.email)
            if email != account.email:
                other = self.repository.find_by_email(email)
                if other is not None and other.id != account.id:
                    raise DuplicateEmail(email)
            changes["email"] = email

        account = self.repository.update_profile(replace(account, **changes))
        logger.info("Updated profile of account %s: %s", account.login, sorted(changes))
        return account.public_view()

    def _ensure_available(self, login: str, email: str) -> None:
        if self.repository.find_by_login(login) is not None:
            raise DuplicateLogin(login)
        if self.repository.find_by_email(email) is not None:
            raise DuplicateEmail(email)

    def _require(self, account_id: int) -> Account:
        account = self.repository.find_by_id(account_id)
        if account is None:
            raise NotFound(account_id)
        return account

    def _require_login(self, login: str) -> Account:
        account = self.repository.find_by_login(normalize_login(login or ""))
        if account is None:
            raise NotFound(login)
        return account

    def _notify(self, account: Account, kind: NotificationKind) -> None:
        try:
            self.notifier.notify(account, kind)
        except Exception:
            logger.exception("Notifier raised for %s email of account %s", kind.value, account.login)

    def _resolve_lang_key(self, lang_key: str | None) -> str:
        return normalize_lang_key(lang_key, self.supported_lang_keys, self.default_lang_key)

    @cached_property
    def _dummy_hash(self) -> str:
        """Hash compared against for unknown logins, at the same cost as stored hashes."""
        return self._hash_password("dummy_password_for_timing_safety")

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()

    @staticmethod
    def _check(field: str, result: ValidationResult) -> None:
        if not result.valid:
            raise ValidationError(field, result.reason.value)
