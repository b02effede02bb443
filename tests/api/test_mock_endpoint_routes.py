import unittest
import uuid
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from mirage.api.dependencies import CurrentUser, get_current_user
from mirage.main import create_app
from mirage.persistence.db import get_db_session
from mirage.services.billing_service import PlanLimits
from support import FakeEndpointRepository, FakeRecorder, fake_session


def body(**overrides):
    data = {
        "name": "Get user",
        "method": "get",
        "url_pattern": "/api/users/{id}",
        "response_data": {"id": 1},
    }
    data.update(overrides)
    return data


class TestMockEndpointRoutes(unittest.TestCase):
    def setUp(self):
        self.user = CurrentUser(
            id=uuid.uuid4(),
            email="ada@example.com",
            is_admin=False,
            permissions=["read", "write"],
        )
        self.repo = FakeEndpointRepository()

        self.app = create_app()
        self.app.state.usage_recorder = FakeRecorder()
        self.app.state.billing.get_plan_limits = AsyncMock(return_value=PlanLimits("free", 10, 10, 5000))
        self.app.state.billing.assert_quota = AsyncMock()

        self.app.dependency_overrides[get_db_session] = fake_session
        self.app.dependency_overrides[get_current_user] = lambda: self.user

        patcher = patch(
            "mirage.services.mock_endpoint_service.MockEndpointRepository",
            return_value=self.repo,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        self.client = TestClient(self.app)

    def test_create_normalises_method(self):
        response = self.client.post("/api/v1/mock-endpoints", json=body())

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data["method"], "GET")
        self.assertEqual(data["response_status_code"], 200)
        self.assertTrue(data["is_active"])
        self.app.state.billing.assert_quota.assert_awaited_once()
        self.assertEqual(self.app.state.billing.assert_quota.await_args.args[2], "endpoints")

    def test_create_duplicate_conflicts(self):
        self.client.post("/api/v1/mock-endpoints", json=body())
        response = self.client.post("/api/v1/mock-endpoints", json=body())

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "DUPLICATE_RESOURCE")

    def test_invalid_fields(self):
        for bad in (
            body(url_pattern="api/users"),
            body(url_pattern="/api/<script>"),
            body(method="OPTIONS"),
            body(response_status_code=700),
            body(response_delay_ms=-1),
            body(name=""),
        ):
            response = self.client.post("/api/v1/mock-endpoints", json=bad)
            self.assertEqual(response.status_code, 400, bad)
            self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_missing_response_data(self):
        data = body()
        del data["response_data"]

        response = self.client.post("/api/v1/mock-endpoints", json=data)

        self.assertEqual(response.status_code, 400)

    def test_list_get_update_delete_activate(self):
        created = self.client.post("/api/v1/mock-endpoints", json=body()).json()
        endpoint_id = created["id"]

        listing = self.client.get("/api/v1/mock-endpoints", params={"limit": 10})
        self.assertEqual(listing.status_code, 200)

        fetched = self.client.get(f"/api/v1/mock-endpoints/{endpoint_id}")
        self.assertEqual(fetched.json()["url_pattern"], "/api/users/{id}")

        updated = self.client.put(
            f"/api/v1/mock-endpoints/{endpoint_id}",
            json={"response_status_code": 404},
        )
        self.assertEqual(updated.json()["response_status_code"], 404)
        self.assertEqual(updated.json()["name"], "Get user")

        deleted = self.client.delete(f"/api/v1/mock-endpoints/{endpoint_id}")
        self.assertEqual(deleted.status_code, 200)
        self.assertFalse(self.repo.endpoints[0].is_active)

        activated = self.client.post(f"/api/v1/mock-endpoints/{endpoint_id}/activate")
        self.assertEqual(activated.status_code, 200)
        self.assertEqual(activated.json()["id"], endpoint_id)
        self.assertTrue(activated.json()["is_active"])

    def test_other_owner_gets_not_found(self):
        created = self.client.post("/api/v1/mock-endpoints", json=body()).json()
        self.user.id = uuid.uuid4()

        response = self.client.get(f"/api/v1/mock-endpoints/{created['id']}")

        self.assertEqual(response.status_code, 404)

    def test_requires_authentication(self):
        del self.app.dependency_overrides[get_current_user]

        response = self.client.get("/api/v1/mock-endpoints")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "AUTH_REQUIRED")


if __name__ == "__main__":
    unittest.main()
