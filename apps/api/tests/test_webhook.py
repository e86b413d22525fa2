"""
Tests for webhook signing, URL validation and feature change dispatch.
"""

import json

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from flagforge.models import Organization, Webhook, WebhookLog
from flagforge.services.webhook import (
    EVENT_HEADER,
    FEATURES_UPDATED_EVENT,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    FeatureWebhookNotifier,
    SSRFError,
    generate_signature,
    validate_webhook_url,
    verify_signature,
)


def allow_all(url: str) -> None:
    pass


class Receiver:
    """Records requests and answers with a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


@pytest_asyncio.fixture
async def add_webhook(db, test_org: Organization):
    async def _add(**kwargs) -> Webhook:
        values = {
            "org_id": test_org.id,
            "name": "Deploy hook",
            "url": "https://hooks.example.com/flags",
            "events": [],
            "environments": [],
            "projects": [],
            "is_active": True,
            "failure_count": 0,
            "max_failures": 5,
        }
        values.update(kwargs)
        webhook = Webhook(**values)
        db.add(webhook)
        await db.commit()
        return webhook
    return _add


def make_notifier(session_factory, receiver: Receiver) -> FeatureWebhookNotifier:
    return FeatureWebhookNotifier(
        session_factory,
        transport=httpx.MockTransport(receiver),
        url_validator=allow_all,
    )


# ============ Signatures ============


def test_signature_round_trip():
    signature = generate_signature('{"a":1}', "s3cret", "1700000000")
    assert verify_signature('{"a":1}', "s3cret", "1700000000", signature)
    assert not verify_signature('{"a":2}', "s3cret", "1700000000", signature)
    assert not verify_signature('{"a":1}', "other", "1700000000", signature)


# ============ URL validation ============


@pytest.mark.parametrize("url", [
    "ftp://hooks.example.com/x",
    "http:///no-host",
    "http://localhost:8000/hook",
    "http://127.0.0.1/hook",
    "http://10.1.2.3/hook",
    "http://169.254.169.254/latest/meta-data",
    "http://[::1]/hook",
])
def test_validate_webhook_url_blocks(url):
    with pytest.raises(SSRFError):
        validate_webhook_url(url)


def test_validate_webhook_url_allows_public_ip():
    validate_webhook_url("https://93.184.216.34/hook")


# ============ Filters ============


def test_matches_filters():
    webhook = Webhook(
        events=[FEATURES_UPDATED_EVENT],
        environments=["production"],
        projects=["prj_web"],
        is_active=True,
    )
    assert webhook.matches(FEATURES_UPDATED_EVENT, ["production"], ["", "prj_web"])
    assert not webhook.matches("other.event", ["production"], ["prj_web"])
    assert not webhook.matches(FEATURES_UPDATED_EVENT, ["staging"], ["prj_web"])
    assert not webhook.matches(FEATURES_UPDATED_EVENT, ["production"], ["prj_app"])

    webhook.is_active = False
    assert not webhook.matches(FEATURES_UPDATED_EVENT, ["production"], ["prj_web"])


def test_empty_filters_match_everything():
    webhook = Webhook(events=[], environments=[], projects=[], is_active=True)
    assert webhook.matches(FEATURES_UPDATED_EVENT, [], [""])


# ============ Dispatch ============


@pytest.mark.asyncio
async def test_notify_delivers_signed_payload(
    session_factory,
    add_webhook,
    test_org: Organization,
):
    webhook = await add_webhook(secret="whsec", headers={"X-Team": "growth"})
    receiver = Receiver()
    notifier = make_notifier(session_factory, receiver)

    delivered = await notifier.notify(test_org.id, ["production"], ["", "prj_web"])

    assert delivered == 1
    request = receiver.requests[0]
    body = request.content.decode()
    assert json.loads(body) == {
        "event": FEATURES_UPDATED_EVENT,
        "organization": str(test_org.id),
        "environments": ["production"],
        "projects": ["prj_web"],
        "timestamp": json.loads(body)["timestamp"],
    }
    assert request.headers[EVENT_HEADER] == FEATURES_UPDATED_EVENT
    assert request.headers["X-Team"] == "growth"
    assert verify_signature(
        body, "whsec", request.headers[TIMESTAMP_HEADER], request.headers[SIGNATURE_HEADER],
    )

    async with session_factory() as session:
        logs = (await session.execute(
            select(WebhookLog).where(WebhookLog.webhook_id == webhook.id)
        )).scalars().all()
    assert len(logs) == 1
    assert logs[0].success is True
    assert logs[0].response_status == 200


@pytest.mark.asyncio
async def test_notify_skips_non_matching_webhooks(
    session_factory,
    add_webhook,
    test_org: Organization,
):
    await add_webhook(environments=["staging"])
    await add_webhook(projects=["prj_app"])
    await add_webhook(is_active=False)
    receiver = Receiver()

    delivered = await make_notifier(session_factory, receiver).notify(
        test_org.id, ["production"], ["prj_web"],
    )

    assert delivered == 0
    assert receiver.requests == []


@pytest.mark.asyncio
async def test_failures_disable_webhook(
    session_factory,
    add_webhook,
    test_org: Organization,
):
    webhook = await add_webhook(failure_count=1, max_failures=2)
    notifier = make_notifier(session_factory, Receiver(status_code=500))

    assert await notifier.notify(test_org.id, ["production"], [""]) == 0

    async with session_factory() as session:
        stored = await session.get(Webhook, webhook.id, populate_existing=True)
        log = (await session.execute(select(WebhookLog))).scalars().one()
    assert stored.failure_count == 2
    assert stored.is_active is False
    assert log.error_message == "HTTP 500"


@pytest.mark.asyncio
async def test_blocked_url_is_logged_not_sent(
    session_factory,
    add_webhook,
    test_org: Organization,
):
    await add_webhook(url="http://127.0.0.1:9000/hook")
    receiver = Receiver()
    notifier = FeatureWebhookNotifier(
        session_factory,
        transport=httpx.MockTransport(receiver),
    )

    assert await notifier.notify(test_org.id, ["production"], [""]) == 0

    assert receiver.requests == []
    async with session_factory() as session:
        log = (await session.execute(select(WebhookLog))).scalars().one()
    assert log.error_message.startswith("SSRF protection")


@pytest.mark.asyncio
async def test_hook_call_runs_in_background(
    session_factory,
    add_webhook,
    test_org: Organization,
):
    await add_webhook()
    receiver = Receiver()
    notifier = make_notifier(session_factory, receiver)

    await notifier(organization=test_org.id, environments=["production"], projects=[""])
    await notifier.drain()

    assert len(receiver.requests) == 1


@pytest.mark.asyncio
async def test_notify_never_raises(test_org: Organization):
    def broken_factory():
        raise RuntimeError("database unavailable")

    notifier = FeatureWebhookNotifier(broken_factory, url_validator=allow_all)

    assert await notifier.notify(test_org.id, ["production"], [""]) == 0
