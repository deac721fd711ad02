"""
Integration tests for the account lifecycle flow.

Drives the application from src.api.main against a real database:
register, activate, authenticate, reset the password and update the profile.
Requires PostgreSQL to be running (via docker-compose).
"""

import re
from base64 import b64encode
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.adapters.repository.postgres import PostgresAccountRepository
from src.api.dependencies import get_account_service
from src.api.main import app
from src.domain.accounts import ROLE_ADMIN, ROLE_USER
from src.domain.lifecycle import AccountService
from src.domain.notifications import NotificationService
from tests.factories import RecordingTransport

pytestmark = pytest.mark.integration

KEY_IN_LINK = re.compile(r"key=([A-Za-z0-9]{20})")


def basic_auth_header(login: str, password: str) -> dict:
    """Create HTTP BASIC AUTH header for testing."""
    credentials = f"{login}:{password}"
    encoded = b64encode(credentials.encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


@pytest.fixture
def client(
    repository: PostgresAccountRepository, notifier: NotificationService, service: AccountService
) -> Generator[TestClient, None, None]:
    """Create test client with the real database behind the repository."""
    app.state.repository = repository
    app.state.notifier = notifier
    app.dependency_overrides[get_account_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def last_key(transport: RecordingTransport) -> str:
    match = KEY_IN_LINK.search(transport.sent[-1].body)
    assert match is not None
    return match.group(1)


class TestAccountFlow:
    """End-to-end flows through /v1."""

    def test_register_activate_and_authenticate(
        self, client: TestClient, transport: RecordingTransport
    ) -> None:
        response = client.post(
            "/v1/register",
            json={"login": "JDoe", "email": "JDoe@Example.com", "password": "password", "lang_key": "ru-RU"},
        )

        assert response.status_code == 201
        assert response.json()["login"] == "jdoe"
        assert response.json()["email"] == "jdoe@example.com"
        assert response.json()["lang_key"] == "ru"
        assert transport.sent[-1].subject == "Активация учётной записи"

        assert client.get("/v1/account", headers=basic_auth_header("jdoe", "password")).status_code == 401

        activated = client.post("/v1/activate", json={"key": last_key(transport)})
        assert activated.status_code == 200

        me = client.get("/v1/account", headers=basic_auth_header("jdoe", "password"))
        assert me.status_code == 200
        assert me.json()["authorities"] == [ROLE_USER]

    def test_password_reset_flow(self, client: TestClient, transport: RecordingTransport) -> None:
        client.post("/v1/register", json={"login": "jdoe", "email": "jdoe@example.com", "password": "password"})
        client.post("/v1/activate", json={"key": last_key(transport)})

        client.post("/v1/account/reset-password/init", json={"email_or_login": "jdoe"})
        key = last_key(transport)

        finish = client.post(
            "/v1/account/reset-password/finish", json={"key": key, "new_password": "newpassword"}
        )
        replay = client.post(
            "/v1/account/reset-password/finish", json={"key": key, "new_password": "otherpassword"}
        )

        assert finish.status_code == 200
        assert replay.status_code == 400
        assert client.get("/v1/account", headers=basic_auth_header("jdoe", "newpassword")).status_code == 200

    def test_profile_update_cannot_escalate(
        self, client: TestClient, repository: PostgresAccountRepository, transport: RecordingTransport
    ) -> None:
        client.post("/v1/register", json={"login": "jdoe", "email": "jdoe@example.com", "password": "password"})
        client.post("/v1/activate", json={"key": last_key(transport)})

        response = client.post(
            "/v1/account",
            json={"last_name": "Doe", "authorities": [ROLE_ADMIN]},
            headers=basic_auth_header("jdoe", "password"),
        )

        assert response.status_code == 200
        assert repository.find_by_login("jdoe").authorities == frozenset({ROLE_USER})
        assert repository.find_by_login("jdoe").last_name == "Doe"

    def test_duplicate_registration(self, client: TestClient) -> None:
        client.post("/v1/register", json={"login": "jdoe", "email": "jdoe@example.com", "password": "password"})

        response = client.post(
            "/v1/register", json={"login": "jdoe", "email": "second@example.com", "password": "password"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "login", "reason": "already_used"}


class TestHealth:
    def test_health_runs_database_check(self, client: TestClient, pool) -> None:
        app.state.pool = pool
        try:
            response = client.get("/health")
        finally:
            app.state.pool = None

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
