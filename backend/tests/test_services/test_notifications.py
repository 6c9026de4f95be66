"""Notification backend tests."""

import json
import uuid

import httpx
import pytest

from penny.services.notifications import (
    InMemoryNotificationBackend,
    LoggingNotificationBackend,
    Notification,
    WebhookNotificationBackend,
)


def _notification() -> Notification:
    return Notification(
        user_id=uuid.uuid4(),
        intervention_id=uuid.uuid4(),
        intervention_type="drift_alert",
        title="Portfolio Drift Detected",
        message="Take a look.",
    )


@pytest.mark.asyncio
async def test_in_memory_collects():
    backend = InMemoryNotificationBackend()
    note = _notification()
    await backend.send(note)
    assert backend.sent == [note]


@pytest.mark.asyncio
async def test_in_memory_failure():
    backend = InMemoryNotificationBackend(fail=True)
    with pytest.raises(RuntimeError):
        await backend.send(_notification())
    assert backend.sent == []


@pytest.mark.asyncio
async def test_logging_backend_does_not_raise():
    await LoggingNotificationBackend().send(_notification())


@pytest.mark.asyncio
async def test_webhook_posts_payload():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    note = _notification()
    backend = WebhookNotificationBackend("http://push.test/notify", transport=httpx.MockTransport(handler))
    await backend.send(note)

    assert received[0]["intervention_id"] == str(note.intervention_id)
    assert received[0]["title"] == "Portfolio Drift Detected"


@pytest.mark.asyncio
async def test_webhook_error_raises():
    backend = WebhookNotificationBackend(
        "http://push.test/notify", transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )
    with pytest.raises(httpx.HTTPStatusError):
        await backend.send(_notification())
