import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.cache.token_blacklist import TokenBlacklist
from mirage.config import settings
from mirage.domain.errors import AuthFailedError, ConflictError, NotFoundError
from mirage.persistence.models.api_key import ApiKey
from mirage.persistence.models.user import User
from mirage.persistence.repositories.api_key_repo import ApiKeyRepository
from mirage.persistence.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Credential helpers
# ─────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode()[:72], password_hash.encode())
    except ValueError:
        return False


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key() -> str:
    return f"{settings.API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    expires_at = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    )
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "jti": uuid.uuid4().hex,
        "exp": expires_at,
    }
    token = jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise AuthFailedError("Token has expired", code="TOKEN_EXPIRED") from exc
    except JWTError as exc:
        raise AuthFailedError("Invalid token", code="INVALID_TOKEN") from exc


# ─────────────────────────────────────────────
# Identity
# ─────────────────────────────────────────────

@dataclass
class Identity:
    """
    A caller resolved from a bearer credential.
    """

    user: User
    via: str
    permissions: List[str] = field(default_factory=lambda: ["read", "write"])
    token_id: Optional[str] = None
    token_expires_at: Optional[datetime] = None


class AuthService:
    """
    Registration, login and bearer-credential resolution.

    Tokens starting with the API key prefix are API keys; anything else
    is treated as a JWT.
    """

    def __init__(self, blacklist: TokenBlacklist):
        self.blacklist = blacklist

    # ─────────────────────────────────────────────
    # Accounts
    # ─────────────────────────────────────────────

    async def register(
        self,
        *,
        session: AsyncSession,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        repo = UserRepository(session)

        if await repo.get_by_email(email):
            raise ConflictError("An account with this email already exists", details={"field": "email"})

        try:
            user = await repo.create(
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
            await repo.commit()
        except IntegrityError as exc:
            await repo.rollback()
            raise ConflictError("An account with this email already exists", details={"field": "email"}) from exc

        logger.info(f"Registered user {user.id}")
        return await repo.refresh(user)

    async def login(
        self,
        *,
        session: AsyncSession,
        email: str,
        password: str,
    ) -> Tuple[User, str, datetime]:
        repo = UserRepository(session)
        user = await repo.get_by_email(email)

        if user is None or not verify_password(password, user.password_hash):
            raise AuthFailedError("Invalid email or password", code="INVALID_CREDENTIALS")

        if not user.is_active:
            raise AuthFailedError("User account is inactive", code="USER_INACTIVE")

        user.last_login_at = datetime.now(timezone.utc)
        await repo.commit()

        token, expires_at = create_access_token(user)
        return user, token, expires_at

    async def logout(self, identity: Identity) -> None:
        if identity.token_id and identity.token_expires_at:
            await self.blacklist.revoke(identity.token_id, identity.token_expires_at)

    # ─────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────

    async def resolve(self, *, session: AsyncSession, token: str) -> Identity:
        if token.startswith(settings.API_KEY_PREFIX):
            return await self._resolve_api_key(session, token)
        return await self._resolve_jwt(session, token)

    async def _resolve_jwt(self, session: AsyncSession, token: str) -> Identity:
        claims = decode_access_token(token)

        jti = claims.get("jti")
        if jti and await self.blacklist.is_revoked(jti):
            raise AuthFailedError("Token has been revoked", code="TOKEN_REVOKED")

        try:
            user_id = UUID(claims.get("sub", ""))
        except ValueError as exc:
            raise AuthFailedError("Invalid token", code="INVALID_TOKEN") from exc

        user = await UserRepository(session).get_by_id(user_id)
        self._ensure_active(user)

        exp = claims.get("exp")
        return Identity(
            user=user,
            via="jwt",
            token_id=jti,
            token_expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )

    async def _resolve_api_key(self, session: AsyncSession, raw_key: str) -> Identity:
        repo = ApiKeyRepository(session)
        found = await repo.find_active_by_hash(hash_api_key(raw_key))

        if found is None:
            raise AuthFailedError("Invalid API key", code="INVALID_API_KEY")

        api_key, user = found
        self._ensure_active(user)

        await repo.touch_last_used(api_key)
        await repo.commit()

        return Identity(user=user, via="api_key", permissions=list(api_key.permissions or []))

    @staticmethod
    def _ensure_active(user: User | None) -> None:
        if user is None:
            raise AuthFailedError("User not found", code="USER_NOT_FOUND")
        if not user.is_active:
            raise AuthFailedError("User account is inactive", code="USER_INACTIVE")

    # ─────────────────────────────────────────────
    # API keys
    # ─────────────────────────────────────────────

    async def create_api_key(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        name: str,
        permissions: List[str],
        expires_at: datetime | None = None,
    ) -> Tuple[ApiKey, str]:
        raw_key = generate_api_key()
        repo = ApiKeyRepository(session)

        api_key = await repo.add(
            ApiKey(
                user_id=user_id,
                key_hash=hash_api_key(raw_key),
                key_prefix=raw_key[:8],
                name=name,
                permissions=permissions,
                expires_at=expires_at,
            )
        )
        await repo.commit()

        logger.info(f"Created API key {api_key.id} for user {user_id}")
        return await repo.refresh(api_key), raw_key

    async def list_api_keys(self, *, session: AsyncSession, user_id: UUID) -> List[ApiKey]:
        return await ApiKeyRepository(session).list_for_user(user_id)

    async def revoke_api_key(self, *, session: AsyncSession, user_id: UUID, key_id: UUID) -> None:
        repo = ApiKeyRepository(session)
        api_key = await repo.get_owned(key_id, user_id)
        if api_key is None:
            raise NotFoundError("API key not found")

        api_key.is_active = False
        await repo.commit()
        logger.info(f"Revoked API key {api_key.id}")
