"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repository and lifecycle service with a controllable clock
- Recording mail transport and inline notification gateway
"""

from datetime import timedelta

import pytest

from src.adapters.mail.templates import JinjaTemplateRenderer
from src.adapters.repository.memory import InMemoryAccountRepository
from src.domain.lifecycle import AccountService
from src.domain.notifications import NotificationService
from tests.factories import TEST_BCRYPT_COST, FakeClock, RecordingTransport


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def notifier(transport: RecordingTransport) -> NotificationService:
    """Inline notification gateway with the bundled templates."""
    return NotificationService(
        renderer=JinjaTemplateRenderer(),
        transport=transport,
        base_url="http://accounts.test",
        default_lang_key="en",
        supported_lang_keys=("en", "ru"),
    )


@pytest.fixture
def service(
    repository: InMemoryAccountRepository, notifier: NotificationService, clock: FakeClock
) -> AccountService:
    return AccountService(
        repository=repository,
        notifier=notifier,
        default_lang_key="en",
        supported_lang_keys=("en", "ru"),
        password_min_length=8,
        reset_key_ttl=timedelta(hours=24),
        bcrypt_cost=TEST_BCRYPT_COST,
        clock=clock,
    )
