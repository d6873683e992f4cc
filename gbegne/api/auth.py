"""Account, guest and current-owner routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.api.dependencies import bearer_token, get_current_owner
from gbegne.auth.security import account_service
from gbegne.db.session import get_db
from gbegne.exceptions import InvalidCredentialsError
from gbegne.middleware.rate_limit import rate_limit_accounts
from gbegne.schemas.schemas import (
    AnonymousOwner,
    AnyOwner,
    ConfirmEmailRequest,
    GuestCreate,
    LoginRequest,
    LoginResponse,
    OwnerResponse,
    RegisteredOwner,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
)
from gbegne.services.identity import identity_resolver, suggest_username

router = APIRouter(prefix="/v1", tags=["Identity"])


@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an account",
    description="Create an account. It must be confirmed by email before logging in.",
)
@rate_limit_accounts()
async def register(
    request: Request,
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await account_service.register(db, payload.email, payload.password)
    await db.commit()

    return RegisterResponse(
        id=user.id,
        email=user.email,
        email_confirmed=user.email_confirmed_at is not None,
        created_at=user.created_at,
    )


@router.post(
    "/auth/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Confirm an email address",
)
async def confirm_email(
    payload: ConfirmEmailRequest,
    db: AsyncSession = Depends(get_db),
):
    await account_service.confirm_email(db, payload.email, payload.token)
    await db.commit()


@router.post(
    "/auth/resend-verification",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Resend the verification email",
)
@rate_limit_accounts()
async def resend_verification(
    request: Request,
    payload: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
):
    await account_service.resend_verification(db, payload.email)
    await db.commit()
    return {"status": "accepted"}


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    summary="Log in",
    description="Open a session. The session token is only shown in this response.",
)
@rate_limit_accounts()
async def login(
    request: Request,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    token, session, user = await account_service.login(db, payload.email, payload.password)
    await db.commit()

    return LoginResponse(
        session_token=token,
        expires_at=session.expires_at,
        owner=RegisteredOwner(id=user.id, email=user.email),
    )


@router.post(
    "/auth/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out",
)
async def logout(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
):
    if not token or not await account_service.logout(db, token):
        raise InvalidCredentialsError()
    await db.commit()


@router.post(
    "/guests",
    response_model=AnonymousOwner,
    summary="Continue as a guest",
    description="Reuse the guest profile with this exact username, or create it.",
)
@rate_limit_accounts()
async def continue_as_guest(
    request: Request,
    payload: GuestCreate,
    db: AsyncSession = Depends(get_db),
):
    return await identity_resolver.continue_as_guest(db, payload.username)


@router.get(
    "/guests/suggestion",
    summary="Suggest a guest username",
)
async def guest_username_suggestion():
    return {"username": suggest_username()}


@router.get(
    "/me",
    response_model=OwnerResponse,
    summary="Current owner",
    description="Who the request acts as: a registered user, a guest, or nobody.",
)
async def me(owner: AnyOwner = Depends(get_current_owner)):
    return OwnerResponse(owner=owner)
