from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.db import get_db_session
from mirage.persistence.repositories.mock_endpoint_repo import MockEndpointRepository
from mirage.services.auth_service import AuthService
from mirage.services.billing_service import BillingService
from mirage.services.dispatch_service import MockDispatchService
from mirage.services.mock_endpoint_service import MockEndpointService
from mirage.services.usage_recorder import UsageRecorder

# Process-wide components live on app.state (built in mirage.main.create_app).


def get_billing_service(request: Request) -> BillingService:
    return request.app.state.billing


def get_usage_recorder(request: Request) -> UsageRecorder:
    return request.app.state.usage_recorder


def get_auth_service(request: Request) -> AuthService:
    return AuthService(request.app.state.token_blacklist)


def get_mock_endpoint_service(request: Request) -> MockEndpointService:
    return MockEndpointService(
        validator=request.app.state.validator,
        billing=request.app.state.billing,
    )


def get_dispatch_service(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> MockDispatchService:
    return MockDispatchService(
        endpoints=MockEndpointRepository(session),
        matcher=request.app.state.matcher,
        validator=request.app.state.validator,
        recorder=request.app.state.usage_recorder,
    )
