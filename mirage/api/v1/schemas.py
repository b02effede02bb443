import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from mirage.config import settings


HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

URL_PATTERN_RE = re.compile(r"^/[a-zA-Z0-9\-._~:/?#\[\]@!$&'()*+,;={}]*$")


def _check_url_pattern(value: str) -> str:
    if not value.startswith("/"):
        raise ValueError("URL pattern must start with /")
    if not URL_PATTERN_RE.match(value):
        raise ValueError("URL pattern contains invalid characters")
    return value


# ─────────────────────────────────────────────
# Mock endpoints
# ─────────────────────────────────────────────

class MockEndpointCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    method: HttpMethod
    url_pattern: str = Field(..., max_length=500, examples=["/api/users/{id}"])
    request_schema: Optional[Dict[str, Any]] = None
    response_data: Any = Field(...)
    response_status_code: int = Field(200, ge=100, lt=600)
    response_delay_ms: int = Field(0, ge=0, le=settings.MAX_RESPONSE_DELAY_MS)

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name is required")
        return value.strip()

    @field_validator("url_pattern")
    @classmethod
    def valid_pattern(cls, value: str) -> str:
        return _check_url_pattern(value)

    @field_validator("response_data")
    @classmethod
    def response_present(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Response data is required")
        return value


class MockEndpointUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    method: Optional[HttpMethod] = None
    url_pattern: Optional[str] = Field(None, max_length=500)
    request_schema: Optional[Dict[str, Any]] = None
    response_data: Any = None
    response_status_code: Optional[int] = Field(None, ge=100, lt=600)
    response_delay_ms: Optional[int] = Field(None, ge=0, le=settings.MAX_RESPONSE_DELAY_MS)
    is_active: Optional[bool] = None

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("url_pattern")
    @classmethod
    def valid_pattern(cls, value: Optional[str]) -> Optional[str]:
        return _check_url_pattern(value) if value is not None else value

    def changes(self) -> Dict[str, Any]:
        """
        Fields the client actually sent. `request_schema: null` clears it.
        """
        data = self.model_dump(exclude_unset=True)
        for key in ("name", "method", "url_pattern", "response_data", "response_status_code",
                    "response_delay_ms", "is_active"):
            if key in data and data[key] is None:
                del data[key]
        return data


class MockEndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    method: str
    url_pattern: str
    request_schema: Optional[Dict[str, Any]] = None
    response_data: Any
    response_status_code: int
    response_delay_ms: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MockEndpointList(BaseModel):
    endpoints: List[MockEndpointResponse]
    total: int
    limit: int
    offset: int


# ─────────────────────────────────────────────
# Auth
# ─────────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool
    is_verified: bool
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    permissions: List[Literal["read", "write"]] = ["read", "write"]
    expires_at: Optional[datetime] = None


class ApiKeyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key_prefix: str
    permissions: List[str]
    is_active: bool
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class ApiKeyCreated(ApiKeyResponse):
    api_key: str = Field(..., description="Shown once; store it now")


# ─────────────────────────────────────────────
# Subscription plans
# ─────────────────────────────────────────────

class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    price_monthly: Decimal
    max_endpoints: int
    max_requests_per_month: int
    max_request_delay_ms: int
    is_active: bool
