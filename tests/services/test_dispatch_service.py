import asyncio
import json
import time
import unittest
import uuid
from unittest.mock import AsyncMock

from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

from mirage.domain.errors import StoreUnavailableError
from mirage.domain.matching.pattern_matcher import PatternMatcher
from mirage.domain.validation.schema_validator import SchemaValidator
from mirage.services.dispatch_service import (
    HEADER_DELAY_APPLIED,
    HEADER_ENDPOINT_ID,
    HEADER_MATCHED_PATTERN,
    HEADER_MOCK,
    HEADER_PROCESSING_TIME,
    MockDispatchService,
    MockRequest,
    MockResponse,
    NoMatch,
    ValidationFailure,
)
from support import FakeEndpointRepository, FakeRecorder, make_endpoint


LOGIN_SCHEMA = {
    "type": "object",
    "properties": {
        "email": {"type": "string"},
        "password": {"type": "string"},
    },
    "required": ["email", "password"],
}


def build_service(endpoints, recorder=None, sleep=None):
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return MockDispatchService(
        endpoints=FakeEndpointRepository(endpoints),
        matcher=PatternMatcher(),
        validator=SchemaValidator(),
        recorder=recorder or FakeRecorder(),
        **kwargs,
    )


class TestDispatch(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.caller = uuid.uuid4()

    async def test_match_returns_configured_response(self):
        endpoint = make_endpoint(
            "/api/users/{id}",
            response_data={"id": 1, "name": "Ada"},
            response_status_code=201,
        )
        service = build_service([endpoint])

        result = await service.dispatch(
            MockRequest(method="GET", path="/api/users/1", caller_id=self.caller)
        )

        self.assertIsInstance(result, MockResponse)
        self.assertEqual(result.status_code, 201)
        self.assertEqual(result.body, {"id": 1, "name": "Ada"})
        self.assertEqual(result.path_params, {"id": "1"})
        self.assertEqual(result.endpoint_id, endpoint.id)

    async def test_diagnostic_headers(self):
        endpoint = make_endpoint("/api/ping")
        service = build_service([endpoint])

        result = await service.dispatch(MockRequest(method="GET", path="/api/ping"))

        self.assertEqual(result.headers[HEADER_MOCK], "true")
        self.assertEqual(result.headers[HEADER_ENDPOINT_ID], str(endpoint.id))
        self.assertEqual(result.headers[HEADER_MATCHED_PATTERN], "/api/ping")
        self.assertRegex(result.headers[HEADER_PROCESSING_TIME], r"^\d+ms$")
        self.assertEqual(result.headers[HEADER_DELAY_APPLIED], "0ms")

    async def test_no_match_is_a_result(self):
        recorder = FakeRecorder()
        service = build_service([make_endpoint("/api/users")], recorder=recorder)

        result = await service.dispatch(
            MockRequest(method="GET", path="/api/nothing", caller_id=self.caller)
        )

        self.assertIsInstance(result, NoMatch)
        payload = result.to_payload()
        self.assertEqual(result.status_code, 404)
        self.assertEqual(payload["code"], "MOCK_ENDPOINT_NOT_FOUND")
        self.assertEqual(payload["path"], "/api/nothing")
        self.assertEqual(recorder.events, [])

    async def test_wrong_method_is_no_match(self):
        service = build_service([make_endpoint("/api/users", method="POST")])
        result = await service.dispatch(MockRequest(method="GET", path="/api/users"))
        self.assertIsInstance(result, NoMatch)

    async def test_schema_gate_suppresses_configured_response(self):
        endpoint = make_endpoint(
            "/api/login",
            method="POST",
            request_schema=LOGIN_SCHEMA,
            response_data={"token": "secret"},
            response_status_code=200,
        )
        recorder = FakeRecorder()
        service = build_service([endpoint], recorder=recorder)

        result = await service.dispatch(
            MockRequest(
                method="POST",
                path="/api/login",
                body={"email": "a@example.com"},
                caller_id=self.caller,
            )
        )

        self.assertIsInstance(result, ValidationFailure)
        payload = result.to_payload()
        self.assertEqual(result.status_code, 400)
        self.assertEqual(payload["error"], "Request validation failed")
        self.assertIn("/password", [d["field"] for d in payload["details"]])
        self.assertNotIn("token", json.dumps(payload))

        self.assertEqual(len(recorder.events), 1)
        self.assertEqual(recorder.events[0].response_status_code, 400)

    async def test_schema_skipped_without_body(self):
        endpoint = make_endpoint("/api/login", method="POST", request_schema=LOGIN_SCHEMA)
        service = build_service([endpoint])

        result = await service.dispatch(MockRequest(method="POST", path="/api/login", body=None))

        self.assertIsInstance(result, MockResponse)

    async def test_delay_is_awaited(self):
        sleep = AsyncMock()
        endpoint = make_endpoint("/api/slow", response_delay_ms=1500)
        service = build_service([endpoint], sleep=sleep)

        result = await service.dispatch(MockRequest(method="GET", path="/api/slow"))

        sleep.assert_awaited_once_with(1.5)
        self.assertEqual(result.headers[HEADER_DELAY_APPLIED], "1500ms")

    async def test_usage_recorded_for_identified_callers_only(self):
        endpoint = make_endpoint("/api/ping")
        recorder = FakeRecorder()
        service = build_service([endpoint], recorder=recorder)

        await service.dispatch(MockRequest(method="GET", path="/api/ping"))
        self.assertEqual(recorder.events, [])

        await service.dispatch(MockRequest(method="GET", path="/api/ping", caller_id=self.caller))
        self.assertEqual(len(recorder.events), 1)
        event = recorder.events[0]
        self.assertEqual(event.user_id, self.caller)
        self.assertEqual(event.endpoint_id, endpoint.id)
        self.assertEqual(event.url_pattern, "/api/ping")
        self.assertEqual(event.response_status_code, 200)

    async def test_store_failure_maps_to_store_unavailable(self):
        endpoints = FakeEndpointRepository()
        endpoints.find_active_by_method = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection lost"))
        )
        service = MockDispatchService(
            endpoints=endpoints,
            matcher=PatternMatcher(),
            validator=SchemaValidator(),
            recorder=FakeRecorder(),
        )

        with self.assertRaises(StoreUnavailableError):
            await service.dispatch(MockRequest(method="GET", path="/api/ping"))

    async def test_repeated_dispatch_is_identical(self):
        endpoints = [
            make_endpoint("/api/{id}", created_offset=1, response_data={"v": "param"}),
            make_endpoint("/api/*", created_offset=2, response_data={"v": "wild"}),
        ]
        service = build_service(endpoints)

        first = await service.dispatch(MockRequest(method="GET", path="/api/7"))
        for _ in range(10):
            again = await service.dispatch(MockRequest(method="GET", path="/api/7"))
            self.assertEqual(again.endpoint_id, first.endpoint_id)
            self.assertEqual(json.dumps(again.body), json.dumps(first.body))


class SingleConnectionRepository(FakeEndpointRepository):
    """
    Endpoint reads check out the only pooled connection and hold it until
    `release`, failing like QueuePool when none is free in time.
    """

    def __init__(self, endpoints, pool: asyncio.Lock, checkout_timeout: float):
        super().__init__(endpoints)
        self.pool = pool
        self.checkout_timeout = checkout_timeout
        self.holding = False

    async def find_active_by_method(self, method: str):
        if not self.holding:
            try:
                await asyncio.wait_for(self.pool.acquire(), self.checkout_timeout)
            except asyncio.TimeoutError:
                raise PoolTimeoutError("QueuePool limit of size 1 overflow 0 reached")
            self.holding = True
        return await super().find_active_by_method(method)

    async def release(self):
        await super().release()
        if self.holding:
            self.holding = False
            self.pool.release()


class TestDelayConcurrency(unittest.IsolatedAsyncioTestCase):
    async def test_zero_delay_finishes_before_slow_request(self):
        slow = make_endpoint("/api/slow", response_delay_ms=300)
        fast = make_endpoint("/api/fast", response_delay_ms=0)
        service = build_service([slow, fast])

        finished = []

        async def call(path):
            await service.dispatch(MockRequest(method="GET", path=path))
            finished.append(path)

        started = time.perf_counter()
        await asyncio.gather(call("/api/slow"), call("/api/fast"))
        elapsed = time.perf_counter() - started

        self.assertEqual(finished, ["/api/fast", "/api/slow"])
        self.assertLess(elapsed, 1.0)

    async def test_sleeping_request_does_not_hold_a_connection(self):
        slow = make_endpoint("/api/slow", response_delay_ms=500)
        fast = make_endpoint("/api/fast", response_delay_ms=0)
        pool = asyncio.Lock()
        repos = []
        finished = []

        async def call(path):
            # One repository per request, as each request gets its own session.
            repo = SingleConnectionRepository([slow, fast], pool, checkout_timeout=0.1)
            repos.append(repo)
            service = MockDispatchService(
                endpoints=repo,
                matcher=PatternMatcher(),
                validator=SchemaValidator(),
                recorder=FakeRecorder(),
            )
            result = await service.dispatch(MockRequest(method="GET", path=path))
            finished.append((path, result.status_code))

        await asyncio.gather(call("/api/slow"), call("/api/fast"))

        self.assertEqual(finished, [("/api/fast", 200), ("/api/slow", 200)])
        self.assertEqual([repo.releases for repo in repos], [1, 1])
        self.assertFalse(pool.locked())


if __name__ == "__main__":
    unittest.main()
