"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Concurrency Design:
-------------------
1. **Uniqueness**: login and email carry UNIQUE constraints. A concurrent
   duplicate INSERT fails with UniqueViolation, which is mapped to
   DuplicateLogin / DuplicateEmail by constraint name. The domain pre-check
   is only a fast path; the constraint is the authority.

2. **Key redemption**: activate() and complete_password_reset() are single
   conditional UPDATE ... RETURNING statements. The WHERE clause carries the
   whole validity check (key matches, still pending, inside the reset
   window), so a key is cleared by exactly one of any concurrent callers.
   The row lock taken by the first UPDATE makes the second re-evaluate the
   WHERE clause against the committed row and match nothing.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.accounts import Account
from src.domain.exceptions import DuplicateEmail, DuplicateLogin, NotFound

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, login, email, password_hash, first_name, last_name, lang_key,
    authorities, activated, activation_key, reset_key, reset_date, register_date
"""

LOGIN_CONSTRAINT = "accounts_login_unique"
EMAIL_CONSTRAINT = "accounts_email_unique"


def _to_account(row: dict[str, Any] | None) -> Account | None:
    if row is None:
        return None
    return Account(
        id=row["id"],
        login=row["login"],
        email=row["email"],
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        lang_key=row["lang_key"],
        authorities=frozenset(row["authorities"] or ()),
        activated=row["activated"],
        activation_key=row["activation_key"],
        reset_key=row["reset_key"],
        reset_date=row["reset_date"],
        register_date=row["register_date"],
    )


def _raise_duplicate(exc: errors.UniqueViolation, account: Account) -> None:
    constraint = exc.diag.constraint_name
    if constraint == LOGIN_CONSTRAINT:
        raise DuplicateLogin(account.login) from None
    if constraint == EMAIL_CONSTRAINT:
        raise DuplicateEmail(account.email) from None
    raise exc


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def _fetch_one(self, sql: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
            return _to_account(row)

    def _execute(self, sql: str, params: tuple) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def find_by_id(self, account_id: int) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE id = %s", (account_id,))

    def find_by_login(self, login: str) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE login = %s", (login,))

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE email = %s", (email,))

    def find_by_activation_key(self, key: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM accounts WHERE activation_key = %s AND NOT activated",
            (key,),
        )

    def find_by_reset_key(self, key: str) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE reset_key = %s", (key,))

    def save(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateLogin: accounts_login_unique violated
            DuplicateEmail: accounts_email_unique violated
        """
        sql = f"""
            INSERT INTO accounts (
                login, email, password_hash, first_name, last_name, lang_key,
                authorities, activated, activation_key, reset_key, reset_date, register_date
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            RETURNING {_COLUMNS}
        """
        params = (
            account.login,
            account.email,
            account.password_hash,
            account.first_name,
            account.last_name,
            account.lang_key,
            sorted(account.authorities),
            account.activated,
            account.activation_key,
            account.reset_key,
            account.reset_date,
            account.register_date,
        )
        try:
            stored = self._fetch_one(sql, params)
        except errors.UniqueViolation as exc:
            _raise_duplicate(exc, account)
        return stored

    def update_profile(self, account: Account) -> Account:
        """
        Persist profile columns only. authorities and credentials are never written here.

        Raises:
            DuplicateEmail: email already used by another account
            NotFound: account was deleted concurrently
        """
        sql = f"""
            UPDATE accounts
            SET first_name = %s, last_name = %s, email = %s, lang_key = %s
            WHERE id = %s
            RETURNING {_COLUMNS}
        """
        params = (account.first_name, account.last_name, account.email, account.lang_key, account.id)
        try:
            stored = self._fetch_one(sql, params)
        except errors.UniqueViolation as exc:
            _raise_duplicate(exc, account)
        if stored is None:
            raise NotFound(account.id)
        return stored

    def update_password(self, account_id: int, password_hash: str) -> bool:
        return self._execute(
            "UPDATE accounts SET password_hash = %s WHERE id = %s", (password_hash, account_id)
        )

    def activate(self, key: str) -> Account | None:
        sql = f"""
            UPDATE accounts
            SET activated = TRUE, activation_key = NULL
            WHERE activation_key = %s AND NOT activated
            RETURNING {_COLUMNS}
        """
        return self._fetch_one(sql, (key,))

    def start_password_reset(self, account_id: int, key: str, issued_at: datetime) -> bool:
        sql = """
            UPDATE accounts
            SET reset_key = %s, reset_date = %s
            WHERE id = %s AND activated
        """
        return self._execute(sql, (key, issued_at, account_id))

    def complete_password_reset(
        self, key: str, password_hash: str, issued_after: datetime
    ) -> Account | None:
        sql = f"""
            UPDATE accounts
            SET password_hash = %s, reset_key = NULL, reset_date = NULL
            WHERE reset_key = %s AND reset_date >= %s
            RETURNING {_COLUMNS}
        """
        return self._fetch_one(sql, (password_hash, key, issued_after))

    def delete(self, account_id: int) -> bool:
        return self._execute("DELETE FROM accounts WHERE id = %s", (account_id,))


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
