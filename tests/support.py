"""
In-memory stand-ins shared by the test modules.
"""
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, List, Optional

BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_endpoint(
    url_pattern: str,
    method: str = "GET",
    *,
    user_id: Optional[uuid.UUID] = None,
    created_offset: int = 0,
    **fields: Any,
) -> SimpleNamespace:
    """
    An object shaped like a MockEndpoint row.

    `created_offset` is in seconds from BASE_TIME; larger means newer.
    """
    created_at = BASE_TIME + timedelta(seconds=created_offset)
    data = {
        "id": uuid.uuid4(),
        "user_id": user_id or uuid.uuid4(),
        "name": f"{method} {url_pattern}",
        "description": None,
        "method": method,
        "url_pattern": url_pattern,
        "request_schema": None,
        "response_data": {"ok": True},
        "response_status_code": 200,
        "response_delay_ms": 0,
        "is_active": True,
        "created_at": created_at,
        "updated_at": created_at,
    }
    data.update(fields)
    return SimpleNamespace(**data)


class FakeEndpointRepository:
    """
    Mirrors MockEndpointRepository over a plain list.
    """

    def __init__(self, endpoints: Optional[List[SimpleNamespace]] = None):
        self.endpoints: List[SimpleNamespace] = list(endpoints or [])
        self.commits = 0
        self.rollbacks = 0
        self.releases = 0

    async def find_active_by_method(self, method: str):
        rows = [e for e in self.endpoints if e.method == method and e.is_active]
        rows.sort(key=lambda e: e.created_at, reverse=True)
        rows.sort(key=lambda e: len(e.url_pattern), reverse=True)
        return rows

    async def list_all_active(self):
        return [e for e in self.endpoints if e.is_active]

    async def create(self, *, user_id, **fields):
        endpoint = make_endpoint(
            fields.pop("url_pattern"),
            fields.pop("method"),
            user_id=user_id,
            created_offset=len(self.endpoints),
            **fields,
        )
        self.endpoints.append(endpoint)
        return endpoint

    async def get_owned(self, endpoint_id, user_id):
        for endpoint in self.endpoints:
            if endpoint.id == endpoint_id and endpoint.user_id == user_id:
                return endpoint
        return None

    async def find_duplicate(self, *, user_id, method, url_pattern, exclude_id=None):
        for endpoint in self.endpoints:
            if (
                endpoint.user_id == user_id
                and endpoint.method == method
                and endpoint.url_pattern == url_pattern
                and endpoint.is_active
                and endpoint.id != exclude_id
            ):
                return endpoint
        return None

    async def count_active_for_user(self, user_id) -> int:
        return sum(1 for e in self.endpoints if e.user_id == user_id and e.is_active)

    async def update(self, endpoint, **changes):
        for key, value in changes.items():
            setattr(endpoint, key, value)
        return endpoint

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def refresh(self, instance):
        return instance

    async def release(self):
        self.releases += 1


class FakeRecorder:
    """
    Collects usage events instead of queueing them.
    """

    def __init__(self):
        self.events = []
        self.dropped = 0
        self.queue = SimpleNamespace(qsize=lambda: 0)

    def record(self, event) -> bool:
        self.events.append(event)
        return True


async def fake_session():
    yield SimpleNamespace()
