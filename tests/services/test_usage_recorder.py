import asyncio
import unittest
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

from mirage.services.usage_recorder import UsageEvent, UsageRecorder


def event(**overrides):
    data = {
        "user_id": uuid.uuid4(),
        "endpoint_id": uuid.uuid4(),
        "method": "GET",
        "url_pattern": "/api/users",
        "response_status_code": 200,
        "processing_time_ms": 3,
    }
    data.update(overrides)
    return UsageEvent(**data)


class FakeSessionFactory:
    """
    Stands in for async_sessionmaker: `async with factory() as session`.
    """

    def __init__(self):
        self.session = MagicMock()
        self.session.commit = AsyncMock()

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


class TestUsageRecorder(unittest.IsolatedAsyncioTestCase):
    async def test_record_never_blocks_when_full(self):
        recorder = UsageRecorder(FakeSessionFactory(), maxsize=2)

        self.assertTrue(recorder.record(event()))
        self.assertTrue(recorder.record(event()))
        with self.assertLogs("mirage.services.usage_recorder", level="WARNING"):
            self.assertFalse(recorder.record(event()))

        self.assertEqual(recorder.dropped, 1)
        self.assertEqual(recorder.queue.qsize(), 2)

    @patch("mirage.services.usage_recorder.UsageRepository")
    async def test_worker_writes_and_stop_drains(self, repository):
        repository.return_value.create = AsyncMock()
        factory = FakeSessionFactory()
        recorder = UsageRecorder(factory, maxsize=10)

        recorder.start()
        first, second = event(), event(response_status_code=400)
        recorder.record(first)
        recorder.record(second)
        await recorder.stop()

        self.assertEqual(repository.return_value.create.await_count, 2)
        kwargs = repository.return_value.create.await_args_list[1].kwargs
        self.assertEqual(kwargs["user_id"], second.user_id)
        self.assertEqual(kwargs["response_status_code"], 400)
        self.assertEqual(factory.session.commit.await_count, 2)

    @patch("mirage.services.usage_recorder.UsageRepository")
    async def test_write_failure_is_swallowed(self, repository):
        repository.return_value.create = AsyncMock(side_effect=[RuntimeError("db down"), None])
        recorder = UsageRecorder(FakeSessionFactory(), maxsize=10)

        recorder.start()
        with self.assertLogs("mirage.services.usage_recorder", level="ERROR"):
            recorder.record(event())
            recorder.record(event())
            await recorder.stop()

        self.assertEqual(repository.return_value.create.await_count, 2)

    async def test_stop_without_start(self):
        recorder = UsageRecorder(FakeSessionFactory())
        await asyncio.wait_for(recorder.stop(), timeout=1)


if __name__ == "__main__":
    unittest.main()
