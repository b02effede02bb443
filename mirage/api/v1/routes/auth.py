from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.api.dependencies import CurrentUser, quota_exempt
from mirage.api.v1.schemas import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from mirage.dependencies import get_auth_service, get_billing_service
from mirage.persistence.db import get_db_session
from mirage.persistence.repositories.user_repo import UserRepository
from mirage.services.auth_service import AuthService
from mirage.services.billing_service import BillingService


router = APIRouter()


# ─────────────────────────────────────────────
# Accounts
# ─────────────────────────────────────────────

@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.register(
        session=session,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Exchange credentials for a JWT",
)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
):
    user, token, expires_at = await auth.login(
        session=session,
        email=payload.email,
        password=payload.password,
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": expires_at,
        "user": user,
    }


@router.post(
    "/logout",
    summary="Revoke the current JWT",
)
async def logout(
    user: CurrentUser = Depends(quota_exempt),
    auth: AuthService = Depends(get_auth_service),
):
    """
    API-key callers have nothing to revoke here; use the API key routes.
    """
    await auth.logout(user.identity)
    return {"message": "Logged out"}


@router.get(
    "/profile",
    response_model=UserResponse,
    summary="Current user profile",
)
async def profile(
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
):
    return await UserRepository(session).get_by_id(user.id)


@router.get(
    "/dashboard",
    summary="Plan limits and current usage",
)
async def dashboard(
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
    billing: BillingService = Depends(get_billing_service),
):
    stats = await billing.get_usage_stats(session, user.id)
    return {
        "user_id": str(user.id),
        "email": user.email,
        "usage": stats.to_dict(),
    }


# ─────────────────────────────────────────────
# API keys
# ─────────────────────────────────────────────

@router.post(
    "/api-keys",
    response_model=ApiKeyCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
)
async def create_api_key(
    payload: ApiKeyCreate,
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
):
    """
    The raw key is returned once; only its hash is stored.
    """
    api_key, raw_key = await auth.create_api_key(
        session=session,
        user_id=user.id,
        name=payload.name,
        permissions=list(payload.permissions),
        expires_at=payload.expires_at,
    )
    data = ApiKeyResponse.model_validate(api_key).model_dump()
    return {**data, "api_key": raw_key}


@router.get(
    "/api-keys",
    response_model=List[ApiKeyResponse],
    summary="List your API keys",
)
async def list_api_keys(
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.list_api_keys(session=session, user_id=user.id)


@router.delete(
    "/api-keys/{key_id}",
    summary="Revoke an API key",
)
async def revoke_api_key(
    key_id: UUID,
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.revoke_api_key(session=session, user_id=user.id, key_id=key_id)
    return {"message": "API key revoked", "id": str(key_id)}
