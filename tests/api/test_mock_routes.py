import unittest
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from mirage.api.dependencies import CurrentUser, get_current_user, get_optional_user
from mirage.dependencies import get_dispatch_service
from mirage.domain.matching.pattern_matcher import PatternMatcher
from mirage.domain.validation.schema_validator import SchemaValidator
from mirage.main import create_app
from mirage.persistence.db import get_db_session
from mirage.services.billing_service import BillingService
from mirage.services.dispatch_service import MockDispatchService
from support import BASE_TIME, FakeEndpointRepository, FakeRecorder, fake_session, make_endpoint


class CountingRecorder(FakeRecorder):
    """
    Each recorded event bumps the monthly counter the billing check reads.
    """

    def __init__(self, usage):
        super().__init__()
        self.usage = usage

    def record(self, event) -> bool:
        self.usage["requests"] += 1
        return super().record(event)


class MockRoutesTestCase(unittest.TestCase):
    def setUp(self):
        self.user = CurrentUser(
            id=uuid.uuid4(),
            email="ada@example.com",
            is_admin=False,
            permissions=["read", "write"],
        )
        self.usage = {"requests": 0}
        self.recorder = CountingRecorder(self.usage)
        self.repo = FakeEndpointRepository([
            make_endpoint(
                "/api/users/{id}",
                response_data={"id": 1, "name": "Ada"},
                response_status_code=200,
            ),
            make_endpoint(
                "/api/login",
                method="POST",
                request_schema={
                    "type": "object",
                    "properties": {"email": {"type": "string"}, "password": {"type": "string"}},
                    "required": ["email", "password"],
                },
                response_data={"token": "abc"},
            ),
            make_endpoint("/api/empty", method="DELETE", response_status_code=204, response_data={}),
        ])

        self.app = create_app()
        self.app.state.usage_recorder = self.recorder
        self.app.state.billing = BillingService()

        self.app.dependency_overrides[get_db_session] = fake_session
        self.app.dependency_overrides[get_dispatch_service] = lambda: MockDispatchService(
            endpoints=self.repo,
            matcher=PatternMatcher(),
            validator=SchemaValidator(),
            recorder=self.recorder,
        )

        for target, attribute, value in (
            ("SubscriptionRepository", "get_active_for_user", AsyncMock(return_value=None)),
            ("UsageRepository", "count_for_month", AsyncMock(side_effect=lambda *a, **k: self.usage["requests"])),
            ("MockEndpointRepository", "count_active_for_user", AsyncMock(return_value=0)),
        ):
            patcher = patch(f"mirage.services.billing_service.{target}")
            mocked = patcher.start()
            setattr(mocked.return_value, attribute, value)
            self.addCleanup(patcher.stop)

        self.client = TestClient(self.app)

    def authenticate(self):
        self.app.dependency_overrides[get_optional_user] = lambda: self.user
        self.app.dependency_overrides[get_current_user] = lambda: self.user


class TestMockServing(MockRoutesTestCase):
    def test_anonymous_caller_is_rejected(self):
        response = self.client.get("/mock/api/users/1")

        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertEqual(body["code"], "AUTH_REQUIRED")
        self.assertEqual(body["details"]["quota_type"], "requests")

    def test_serves_configured_response_with_headers(self):
        self.authenticate()

        response = self.client.get("/mock/api/users/42")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"id": 1, "name": "Ada"})
        self.assertEqual(response.headers["x-mirage-mock"], "true")
        self.assertEqual(response.headers["x-mirage-matched-pattern"], "/api/users/{id}")
        self.assertTrue(response.headers["x-mirage-processing-time"].endswith("ms"))
        self.assertEqual(response.headers["x-mirage-delay-applied"], "0ms")
        self.assertEqual(len(self.recorder.events), 1)

    def test_no_match_payload(self):
        self.authenticate()

        response = self.client.get("/mock/api/nowhere")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["code"], "MOCK_ENDPOINT_NOT_FOUND")
        self.assertEqual(body["path"], "/api/nowhere")
        self.assertEqual(self.recorder.events, [])

    def test_schema_failure(self):
        self.authenticate()

        response = self.client.post("/mock/api/login", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "Request validation failed")
        self.assertIn("/password", [d["field"] for d in body["details"]])
        self.assertNotIn("token", body)

    def test_non_json_body_fails_object_schema(self):
        self.authenticate()

        response = self.client.post(
            "/mock/api/login",
            content=b"email=a",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )

        self.assertEqual(response.status_code, 400)

    def test_undecodable_body_is_rejected(self):
        self.authenticate()

        response = self.client.post(
            "/mock/api/login",
            content=b"\xff\xfe{\"email\": 1}",
            headers={"content-type": "application/json"},
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "VALIDATION_ERROR")
        self.assertEqual(body["details"]["field"], "body")
        self.assertEqual(self.recorder.events, [])

    def test_no_content_status_has_empty_body(self):
        self.authenticate()

        response = self.client.delete("/mock/api/empty")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")

    def test_quota_boundary(self):
        self.authenticate()
        self.usage["requests"] = 9

        first = self.client.get("/mock/api/users/1")
        second = self.client.get("/mock/api/users/1")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 429)
        body = second.json()
        self.assertEqual(body["code"], "QUOTA_EXCEEDED")
        self.assertEqual(body["details"]["quota_type"], "requests")
        self.assertEqual(body["details"]["upgrade_url"], "/api/v1/subscription/plans")

    def test_exempt_routes_ignore_exhausted_quota(self):
        self.authenticate()
        self.usage["requests"] = 10_000
        user_row = SimpleNamespace(
            id=self.user.id,
            email=self.user.email,
            first_name=None,
            last_name=None,
            is_admin=False,
            is_verified=False,
            created_at=BASE_TIME,
        )

        with patch("mirage.api.v1.routes.auth.UserRepository") as users:
            users.return_value.get_by_id = AsyncMock(return_value=user_row)
            profile = self.client.get("/api/v1/auth/profile")
        dashboard = self.client.get("/api/v1/auth/dashboard")

        self.assertEqual(profile.status_code, 200)
        self.assertEqual(profile.json()["email"], "ada@example.com")
        self.assertEqual(dashboard.status_code, 200)
        self.assertEqual(dashboard.json()["usage"]["requests_remaining"], 0)


class TestOperationalRoutes(MockRoutesTestCase):
    def test_health(self):
        for path in ("/health", "/api/v1/health"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 200)

    def test_metrics(self):
        response = self.client.get("/metrics")

        self.assertEqual(response.status_code, 200)
        self.assertIn("usage_queue", response.json())

    def test_debug_listing(self):
        with patch("mirage.api.mock.routes.MockEndpointRepository", return_value=self.repo):
            response = self.client.get("/debug/mocks")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 3)
        self.assertIn("/mock/api/users/{id}", [m["mock_url"] for m in body["mocks"]])

    def test_security_headers(self):
        response = self.client.get("/health")
        self.assertEqual(response.headers["x-content-type-options"], "nosniff")


if __name__ == "__main__":
    unittest.main()
