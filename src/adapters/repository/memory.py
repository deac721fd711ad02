"""
In-memory repository adapter - Implements AccountRepository protocol.

Used for local development (storage_backend=memory) and unit tests. A single
lock serializes every operation, which gives the same guarantees the
PostgreSQL adapter gets from UNIQUE constraints and conditional UPDATEs:
duplicate inserts lose with DuplicateLogin/DuplicateEmail and each key is
redeemed at most once.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime, timezone

from src.domain.accounts import Account
from src.domain.exceptions import DuplicateEmail, DuplicateLogin, NotFound


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with a dict guarded by a lock.

    Stored entities are copied in and out so callers never share state with
    the store.
    """

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _find(self, predicate) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if predicate(account):
                    return replace(account)
        return None

    def find_by_id(self, account_id: int) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account is not None else None

    def find_by_login(self, login: str) -> Account | None:
        return self._find(lambda a: a.login == login)

    def find_by_email(self, email: str) -> Account | None:
        return self._find(lambda a: a.email == email)

    def find_by_activation_key(self, key: str) -> Account | None:
        return self._find(lambda a: not a.activated and a.activation_key == key)

    def find_by_reset_key(self, key: str) -> Account | None:
        return self._find(lambda a: a.reset_key is not None and a.reset_key == key)

    def save(self, account: Account) -> Account:
        with self._lock:
            self._check_unique(account)
            stored = replace(
                account,
                id=next(self._ids),
                register_date=account.register_date or datetime.now(timezone.utc),
            )
            self._accounts[stored.id] = stored
            return replace(stored)

    def update_profile(self, account: Account) -> Account:
        with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                raise NotFound(account.id)
            self._check_unique(account, exclude_id=account.id)
            stored = replace(
                current,
                first_name=account.first_name,
                last_name=account.last_name,
                email=account.email,
                lang_key=account.lang_key,
            )
            self._accounts[stored.id] = stored
            return replace(stored)

    def update_password(self, account_id: int, password_hash: str) -> bool:
        with self._lock:
            current = self._accounts.get(account_id)
            if current is None:
                return False
            self._accounts[account_id] = replace(current, password_hash=password_hash)
            return True

    def activate(self, key: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if not account.activated and account.activation_key == key:
                    stored = replace(account, activated=True, activation_key=None)
                    self._accounts[stored.id] = stored
                    return replace(stored)
        return None

    def start_password_reset(self, account_id: int, key: str, issued_at: datetime) -> bool:
        with self._lock:
            current = self._accounts.get(account_id)
            if current is None or not current.activated:
                return False
            self._accounts[account_id] = replace(current, reset_key=key, reset_date=issued_at)
            return True

    def complete_password_reset(
        self, key: str, password_hash: str, issued_after: datetime
    ) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if (
                    account.reset_key == key
                    and account.reset_date is not None
                    and account.reset_date >= issued_after
                ):
                    stored = replace(
                        account, password_hash=password_hash, reset_key=None, reset_date=None
                    )
                    self._accounts[stored.id] = stored
                    return replace(stored)
        return None

    def delete(self, account_id: int) -> bool:
        with self._lock:
            return self._accounts.pop(account_id, None) is not None

    def _check_unique(self, account: Account, exclude_id: int | None = None) -> None:
        for other in self._accounts.values():
            if other.id == exclude_id:
                continue
            if other.login == account.login:
                raise DuplicateLogin(account.login)
            if other.email == account.email:
                raise DuplicateEmail(account.email)
