import logging
from typing import List, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.dependencies import get_auth_service, get_billing_service
from mirage.domain.errors import AuthRequiredError, ForbiddenError, MirageError
from mirage.persistence.db import get_db_session
from mirage.services.auth_service import AuthService, Identity
from mirage.services.billing_service import BillingService, QuotaType

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """
    Lightweight user context injected into APIs.
    """

    def __init__(
        self,
        id: UUID,
        email: str,
        is_admin: bool,
        permissions: List[str],
        identity: Optional[Identity] = None,
    ):
        self.id = id
        self.email = email
        self.is_admin = is_admin
        self.permissions = permissions
        self.identity = identity

    @classmethod
    def from_identity(cls, identity: Identity) -> "CurrentUser":
        return cls(
            id=identity.user.id,
            email=identity.user.email,
            is_admin=identity.user.is_admin,
            permissions=identity.permissions,
            identity=identity,
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    """
    Resolve the authenticated user from a bearer JWT or API key.
    """
    if credentials is None or not credentials.credentials:
        raise AuthRequiredError("Authentication required")

    identity = await auth.resolve(session=session, token=credentials.credentials)
    return CurrentUser.from_identity(identity)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser | None:
    """
    Like get_current_user, but bad or missing credentials yield None.
    """
    if credentials is None or not credentials.credentials:
        return None

    try:
        identity = await auth.resolve(session=session, token=credentials.credentials)
    except MirageError as exc:
        logger.warning(f"Optional authentication failed: {exc.message}")
        return None

    return CurrentUser.from_identity(identity)


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    Ensure the current user is an admin.
    """

    if not user.is_admin:
        raise ForbiddenError("Admin access required")

    return user


def enforce_quota(quota_type: QuotaType, *, optional_auth: bool = False):
    """
    Dependency factory: reject before the route runs when `quota_type`
    is exhausted.

    With `optional_auth` bad credentials degrade to anonymous, and
    anonymous callers are then rejected with 401.
    """
    user_dependency = get_optional_user if optional_auth else get_current_user

    async def _enforce(
        user: CurrentUser | None = Depends(user_dependency),
        session: AsyncSession = Depends(get_db_session),
        billing: BillingService = Depends(get_billing_service),
    ) -> CurrentUser:
        if user is None:
            raise AuthRequiredError(
                "Authentication required to access mock endpoints",
                details={
                    "message": "Please provide a valid API key or JWT token to use mock endpoints",
                    "quota_type": quota_type,
                },
            )

        await billing.assert_quota(session, user.id, quota_type)
        return user

    return _enforce


async def quota_exempt(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    Account-management routes: authenticated, never quota-gated.
    """
    return user
