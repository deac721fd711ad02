"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services, infrastructure adapters and the authenticated caller
into routes.
"""

from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.config.settings import get_settings
from src.domain.accounts import ROLE_ADMIN, PublicAccount
from src.domain.lifecycle import AccountService
from src.domain.ports import AccountRepository, Notifier


def get_repository(request: Request) -> AccountRepository:
    """
    Get the account repository from app state.

    The repository is created during app lifespan startup (PostgreSQL over
    the connection pool, or in-memory) and stored in app.state.
    """
    return request.app.state.repository


def get_notifier(request: Request) -> Notifier:
    """Get the notification gateway from app state."""
    return request.app.state.notifier


def get_account_service(request: Request) -> AccountService:
    """
    Create the lifecycle service with injected dependencies.

    Wires together the repository, notification gateway and settings.
    """
    settings = get_settings()
    return AccountService(
        repository=get_repository(request),
        notifier=get_notifier(request),
        default_lang_key=settings.default_lang_key,
        supported_lang_keys=tuple(settings.supported_lang_keys),
        password_min_length=settings.password_min_length,
        reset_key_ttl=timedelta(seconds=settings.reset_key_ttl_seconds),
        bcrypt_cost=settings.bcrypt_cost,
    )


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_current_account(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    service: AccountService = Depends(get_account_service),
) -> PublicAccount:
    """
    Authenticate the caller from the HTTP BASIC AUTH header.

    FastAPI's HTTPBasic returns 401 for a missing or malformed header.
    Wrong credentials and pending accounts get the same generic 401.
    """
    account = service.authenticate(credentials.username, credentials.password)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return account


def require_admin(account: PublicAccount = Depends(get_current_account)) -> PublicAccount:
    """Allow only callers holding ROLE_ADMIN."""
    if ROLE_ADMIN not in account.authorities:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return account
