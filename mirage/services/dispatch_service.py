import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from mirage.domain.errors import StoreUnavailableError
from mirage.domain.matching.pattern_matcher import PatternMatcher
from mirage.domain.validation.schema_validator import FieldError, SchemaValidator
from mirage.persistence.models.mock_endpoint import MockEndpoint
from mirage.persistence.repositories.mock_endpoint_repo import MockEndpointRepository
from mirage.services.usage_recorder import UsageEvent, UsageRecorder

logger = logging.getLogger(__name__)


HEADER_MOCK = "X-Mirage-Mock"
HEADER_ENDPOINT_ID = "X-Mirage-Endpoint-Id"
HEADER_MATCHED_PATTERN = "X-Mirage-Matched-Pattern"
HEADER_PROCESSING_TIME = "X-Mirage-Processing-Time"
HEADER_DELAY_APPLIED = "X-Mirage-Delay-Applied"

MIRAGE_HEADERS = [
    HEADER_MOCK,
    HEADER_ENDPOINT_ID,
    HEADER_MATCHED_PATTERN,
    HEADER_PROCESSING_TIME,
    HEADER_DELAY_APPLIED,
]


# ─────────────────────────────────────────────
# Request / result types
# ─────────────────────────────────────────────

@dataclass
class MockRequest:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query: Dict[str, str] = field(default_factory=dict)
    caller_id: Optional[UUID] = None


@dataclass
class MockResponse:
    status_code: int
    body: Any
    headers: Dict[str, str]
    delay_ms: int
    endpoint_id: UUID
    url_pattern: str
    path_params: Dict[str, str]
    processing_time_ms: int


@dataclass
class NoMatch:
    method: str
    path: str

    status_code = 404

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": "No matching mock endpoint found",
            "message": f"No mock endpoint configured for {self.method} {self.path}",
            "code": "MOCK_ENDPOINT_NOT_FOUND",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": self.path,
        }


@dataclass
class ValidationFailure:
    endpoint_id: UUID
    url_pattern: str
    errors: List[FieldError]
    headers: Dict[str, str]
    processing_time_ms: int

    status_code = 400

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": "Request validation failed",
            "details": [error.to_dict() for error in self.errors],
        }


DispatchResult = Union[MockResponse, NoMatch, ValidationFailure]


# ─────────────────────────────────────────────
# Service
# ─────────────────────────────────────────────

class MockDispatchService:
    """
    Turns one inbound mock request into a response.

    Steps run strictly in order: candidates -> match -> validate ->
    parameters -> delay -> response -> usage. NoMatch and
    ValidationFailure are returned, never raised.
    """

    def __init__(
        self,
        *,
        endpoints: MockEndpointRepository,
        matcher: PatternMatcher,
        validator: SchemaValidator,
        recorder: UsageRecorder,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.endpoints = endpoints
        self.matcher = matcher
        self.validator = validator
        self.recorder = recorder
        self.sleep = sleep

    async def dispatch(self, request: MockRequest) -> DispatchResult:
        started = time.perf_counter()

        try:
            candidates = await self.endpoints.find_active_by_method(request.method)
            # Nothing below touches the store; free the connection before any delay.
            await self.endpoints.release()
        except SQLAlchemyError as exc:
            logger.error(f"Endpoint store failed for {request.method} {request.path}: {exc}")
            raise StoreUnavailableError("Failed to handle mock request") from exc

        endpoint = self.matcher.find_best_match(request.path, request.method, candidates)

        if endpoint is None:
            logger.info(f"No matching endpoint found for {request.method} {request.path}")
            return NoMatch(method=request.method, path=request.path)

        if endpoint.request_schema and request.body is not None:
            result = self.validator.validate(request.body, endpoint.request_schema)
            if not result.is_valid:
                logger.info(
                    f"Request validation failed for endpoint {endpoint.id}: "
                    f"{[error.field for error in result.errors]}"
                )
                elapsed = self._elapsed_ms(started)
                self._record(request, endpoint, ValidationFailure.status_code, elapsed)
                return ValidationFailure(
                    endpoint_id=endpoint.id,
                    url_pattern=endpoint.url_pattern,
                    errors=result.errors,
                    headers=self._headers(endpoint, elapsed, delay_ms=0),
                    processing_time_ms=elapsed,
                )

        path_params = self.matcher.extract_path_parameters(request.path, endpoint.url_pattern)

        logger.info(
            f"Mock request matched endpoint {endpoint.id} "
            f"({request.method} {request.path} -> {endpoint.url_pattern}, params={path_params})"
        )

        delay_ms = endpoint.response_delay_ms or 0
        if delay_ms > 0:
            await self.sleep(delay_ms / 1000)

        elapsed = self._elapsed_ms(started)
        self._record(request, endpoint, endpoint.response_status_code, elapsed)

        return MockResponse(
            status_code=endpoint.response_status_code,
            body=endpoint.response_data,
            headers=self._headers(endpoint, elapsed, delay_ms),
            delay_ms=delay_ms,
            endpoint_id=endpoint.id,
            url_pattern=endpoint.url_pattern,
            path_params=path_params,
            processing_time_ms=elapsed,
        )

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    @staticmethod
    def _headers(endpoint: MockEndpoint, elapsed_ms: int, delay_ms: int) -> Dict[str, str]:
        return {
            HEADER_MOCK: "true",
            HEADER_ENDPOINT_ID: str(endpoint.id),
            HEADER_MATCHED_PATTERN: endpoint.url_pattern,
            HEADER_PROCESSING_TIME: f"{elapsed_ms}ms",
            HEADER_DELAY_APPLIED: f"{delay_ms}ms",
        }

    def _record(
        self,
        request: MockRequest,
        endpoint: MockEndpoint,
        status_code: int,
        elapsed_ms: int,
    ) -> None:
        if request.caller_id is None:
            return

        self.recorder.record(
            UsageEvent(
                user_id=request.caller_id,
                endpoint_id=endpoint.id,
                method=request.method,
                url_pattern=endpoint.url_pattern,
                response_status_code=status_code,
                processing_time_ms=elapsed_ms,
            )
        )
