import logging
from typing import Any, Dict, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.config import settings
from mirage.domain.errors import ConflictError, InvalidInputError, NotFoundError
from mirage.domain.validation.schema_validator import InvalidSchema, SchemaValidator
from mirage.persistence.models.mock_endpoint import MockEndpoint
from mirage.persistence.repositories.mock_endpoint_repo import MockEndpointRepository
from mirage.services.billing_service import BillingService

logger = logging.getLogger(__name__)


class MockEndpointService:
    """
    Management of a user's endpoint definitions.

    The duplicate pre-check gives a readable 409; the partial unique
    index in the database is what actually enforces uniqueness.
    """

    def __init__(self, validator: SchemaValidator, billing: BillingService):
        self.validator = validator
        self.billing = billing

    # ─────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────

    async def create(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        payload: Dict[str, Any],
    ) -> MockEndpoint:
        await self._check_fields(session, user_id, payload)

        repo = MockEndpointRepository(session)
        await self._check_duplicate(repo, user_id, payload["method"], payload["url_pattern"])

        try:
            endpoint = await repo.create(user_id=user_id, **payload)
            await repo.commit()
        except IntegrityError as exc:
            await repo.rollback()
            raise self._conflict(payload["method"], payload["url_pattern"]) from exc

        logger.info(f"Created mock endpoint {endpoint.id} ({endpoint.method} {endpoint.url_pattern})")
        return await repo.refresh(endpoint)

    # ─────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────

    async def get(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        endpoint_id: UUID,
    ) -> MockEndpoint:
        endpoint = await MockEndpointRepository(session).get_owned(endpoint_id, user_id)
        if endpoint is None:
            raise NotFoundError("Mock endpoint not found")
        return endpoint

    async def list_endpoints(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        method: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[MockEndpoint], int, int, int]:
        limit = min(max(limit, 1), 100)
        offset = max(offset, 0)

        items, total = await MockEndpointRepository(session).list_for_user(
            user_id=user_id,
            method=method,
            is_active=is_active,
            search=search,
            limit=limit,
            offset=offset,
        )
        return items, total, limit, offset

    # ─────────────────────────────────────────────
    # Update
    # ─────────────────────────────────────────────

    async def update(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        endpoint_id: UUID,
        changes: Dict[str, Any],
    ) -> MockEndpoint:
        repo = MockEndpointRepository(session)
        endpoint = await repo.get_owned(endpoint_id, user_id)
        if endpoint is None:
            raise NotFoundError("Mock endpoint not found")

        await self._check_fields(session, user_id, changes)

        method = changes.get("method", endpoint.method)
        url_pattern = changes.get("url_pattern", endpoint.url_pattern)
        reactivating = changes.get("is_active") is True and not endpoint.is_active
        identity_changed = method != endpoint.method or url_pattern != endpoint.url_pattern

        if endpoint.is_active or reactivating:
            if identity_changed or reactivating:
                await self._check_duplicate(repo, user_id, method, url_pattern, exclude_id=endpoint.id)

        if reactivating:
            await self.billing.assert_quota(session, user_id, "endpoints")

        try:
            await repo.update(endpoint, **changes)
            await repo.commit()
        except IntegrityError as exc:
            await repo.rollback()
            raise self._conflict(method, url_pattern) from exc

        logger.info(f"Updated mock endpoint {endpoint.id}")
        return await repo.refresh(endpoint)

    # ─────────────────────────────────────────────
    # Soft delete / restore
    # ─────────────────────────────────────────────

    async def deactivate(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        endpoint_id: UUID,
    ) -> MockEndpoint:
        repo = MockEndpointRepository(session)
        endpoint = await repo.get_owned(endpoint_id, user_id)
        if endpoint is None:
            raise NotFoundError("Mock endpoint not found")

        if endpoint.is_active:
            await repo.update(endpoint, is_active=False)
            await repo.commit()
            logger.info(f"Deactivated mock endpoint {endpoint.id}")

        return endpoint

    async def activate(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        endpoint_id: UUID,
    ) -> MockEndpoint:
        return await self.update(
            session=session,
            user_id=user_id,
            endpoint_id=endpoint_id,
            changes={"is_active": True},
        )

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    async def _check_fields(
        self,
        session: AsyncSession,
        user_id: UUID,
        fields: Dict[str, Any],
    ) -> None:
        schema = fields.get("request_schema")
        if schema is not None:
            try:
                self.validator.check_schema(schema)
            except InvalidSchema as exc:
                raise InvalidInputError(
                    "Invalid request schema",
                    details={"field": "request_schema", "reason": str(exc)},
                ) from exc

        delay = fields.get("response_delay_ms")
        if delay:
            limits = await self.billing.get_plan_limits(session, user_id)
            max_delay = min(settings.MAX_RESPONSE_DELAY_MS, limits.max_request_delay_ms)
            if delay > max_delay:
                raise InvalidInputError(
                    f"Response delay must be between 0 and {max_delay}ms",
                    details={"field": "response_delay_ms", "plan": limits.plan_name},
                )

    async def _check_duplicate(
        self,
        repo: MockEndpointRepository,
        user_id: UUID,
        method: str,
        url_pattern: str,
        exclude_id: UUID | None = None,
    ) -> None:
        existing = await repo.find_duplicate(
            user_id=user_id,
            method=method,
            url_pattern=url_pattern,
            exclude_id=exclude_id,
        )
        if existing is not None:
            raise self._conflict(method, url_pattern)

    @staticmethod
    def _conflict(method: str, url_pattern: str) -> ConflictError:
        return ConflictError(
            f"Active endpoint already exists for {method} {url_pattern}",
            details={"field": "url_pattern"},
        )
