"""
API v1 routes.

Defines REST endpoints for the account lifecycle:
- POST /v1/register, POST /v1/activate
- POST /v1/account/reset-password/init, POST /v1/account/reset-password/finish
- GET /v1/account, POST /v1/account, POST /v1/account/change-password
- POST /v1/admin/accounts, PUT|DELETE /v1/admin/accounts/{login}

Routes are plain functions: the service blocks on bcrypt and the database,
so FastAPI runs them in its threadpool.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.dependencies import get_account_service, get_current_account, require_admin
from src.api.models import (
    AccountCreateRequest,
    AccountResponse,
    ActivateRequest,
    ChangePasswordRequest,
    ErrorResponse,
    FieldErrorResponse,
    MessageResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordFinishRequest,
    ResetPasswordInitRequest,
)
from src.domain.accounts import AccountCreation, PublicAccount, RegistrationRequest
from src.domain.exceptions import (
    AccountError,
    DuplicateEmail,
    DuplicateLogin,
    InvalidOrExpiredKey,
    NotFound,
    ValidationError,
)
from src.domain.lifecycle import AccountService

router = APIRouter(tags=["v1"])

INVALID_KEY_DETAIL = "Invalid or expired key"


def _bad_request(exc: AccountError) -> HTTPException:
    """Map a domain failure to a 400 with a field-scoped detail where there is one."""
    if isinstance(exc, ValidationError):
        detail: dict[str, str] | str = {"field": exc.field, "reason": exc.reason}
    elif isinstance(exc, (DuplicateLogin, DuplicateEmail)):
        detail = {"field": exc.field, "reason": "already_used"}
    else:
        detail = INVALID_KEY_DETAIL
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": FieldErrorResponse, "description": "Invalid or duplicate field"}},
    summary="Register a new user",
    description="Create a pending account. An activation link is sent to the provided email.",
)
def register(
    request_data: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    registration = RegistrationRequest(
        login=request_data.login,
        email=request_data.email,
        password=request_data.password,
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        lang_key=request_data.lang_key,
    )
    try:
        account = service.register(registration)
    except (ValidationError, DuplicateLogin, DuplicateEmail) as exc:
        raise _bad_request(exc) from None
    return AccountResponse.from_account(account)


@router.post(
    "/activate",
    response_model=AccountResponse,
    responses={400: {"model": ErrorResponse, "description": INVALID_KEY_DETAIL}},
    summary="Activate account with activation key",
)
def activate(
    request_data: ActivateRequest,
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    try:
        account = service.activate(request_data.key)
    except InvalidOrExpiredKey as exc:
        raise _bad_request(exc) from None
    return AccountResponse.from_account(account)


@router.post(
    "/account/reset-password/init",
    response_model=MessageResponse,
    summary="Request a password reset email",
    description="Always succeeds, whether or not the account exists.",
)
def request_password_reset(
    request_data: ResetPasswordInitRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.request_password_reset(request_data.email_or_login)
    return MessageResponse(message="If the account exists, a reset email has been sent")


@router.post(
    "/account/reset-password/finish",
    response_model=MessageResponse,
    responses={400: {"description": "Invalid key or password"}},
    summary="Set a new password with a reset key",
)
def finish_password_reset(
    request_data: ResetPasswordFinishRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        service.reset_password(request_data.key, request_data.new_password)
    except (InvalidOrExpiredKey, ValidationError) as exc:
        raise _bad_request(exc) from None
    return MessageResponse(message="Password has been reset")


@router.get(
    "/account",
    response_model=AccountResponse,
    summary="Get the authenticated account",
)
def current_account(
    account: PublicAccount = Depends(get_current_account),
) -> AccountResponse:
    return AccountResponse.from_account(account)


@router.post(
    "/account",
    response_model=AccountResponse,
    responses={400: {"model": FieldErrorResponse, "description": "Invalid or duplicate field"}},
    summary="Update the authenticated account's profile",
    description="Applies first_name, last_name, email and lang_key. Any other field, "
    "including authorities, is ignored.",
)
def update_profile(
    request_data: ProfileUpdateRequest,
    account: PublicAccount = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    try:
        updated = service.update_own_profile(account.id, request_data.model_dump(exclude_unset=True))
    except (ValidationError, DuplicateEmail) as exc:
        raise _bad_request(exc) from None
    except NotFound:
        raise _not_found() from None
    return AccountResponse.from_account(updated)


@router.post(
    "/account/change-password",
    response_model=MessageResponse,
    responses={400: {"model": FieldErrorResponse, "description": "Invalid password"}},
    summary="Change the authenticated account's password",
)
def change_password(
    request_data: ChangePasswordRequest,
    account: PublicAccount = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        service.change_password(account.id, request_data.new_password)
    except ValidationError as exc:
        raise _bad_request(exc) from None
    except NotFound:
        raise _not_found() from None
    return MessageResponse(message="Password changed")


@router.post(
    "/admin/accounts",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": FieldErrorResponse, "description": "Invalid or duplicate field"}},
    summary="Create an account (admin)",
    description="Creates an activated account and emails its owner a link to choose a password.",
)
def create_account(
    request_data: AccountCreateRequest,
    admin: PublicAccount = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    creation = AccountCreation(
        login=request_data.login,
        email=request_data.email,
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        lang_key=request_data.lang_key,
        authorities=frozenset(request_data.authorities),
    )
    try:
        account = service.create_account(creation)
    except (ValidationError, DuplicateLogin, DuplicateEmail) as exc:
        raise _bad_request(exc) from None
    return AccountResponse.from_account(account)


@router.put(
    "/admin/accounts/{login}",
    response_model=AccountResponse,
    responses={
        400: {"model": FieldErrorResponse, "description": "Invalid or duplicate field"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
    summary="Update another account's profile (admin)",
    description="Same field filter as self-service update: authorities are never changed here.",
)
def update_account(
    login: str,
    request_data: ProfileUpdateRequest,
    admin: PublicAccount = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    try:
        updated = service.update_account(login, request_data.model_dump(exclude_unset=True))
    except (ValidationError, DuplicateEmail) as exc:
        raise _bad_request(exc) from None
    except NotFound:
        raise _not_found() from None
    return AccountResponse.from_account(updated)


@router.delete(
    "/admin/accounts/{login}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
    summary="Delete an account (admin)",
)
def delete_account(
    login: str,
    admin: PublicAccount = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> Response:
    try:
        service.delete_account(login)
    except NotFound:
        raise _not_found() from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)
