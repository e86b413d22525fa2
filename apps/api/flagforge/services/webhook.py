"""Webhook dispatch for feature change notifications."""

import asyncio
import hashlib
import hmac
import ipaddress
import json
import socket
import time
from datetime import datetime, timezone
from typing import Any, Callable
from urllib.parse import urlparse
from uuid import UUID

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.models.webhook import Webhook, WebhookLog

logger = structlog.get_logger()

FEATURES_UPDATED_EVENT = "features.updated"


class SSRFError(Exception):
    """Raised when a URL is blocked due to SSRF protection."""
    pass


def is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is private, loopback, or otherwise restricted."""
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        return False


def validate_webhook_url(url: str) -> None:
    """
    Validate a webhook URL to prevent SSRF attacks.

    Raises:
        SSRFError: If the URL targets a restricted destination.
    """
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        raise SSRFError(f"Invalid URL scheme: {parsed.scheme}. Only http/https allowed.")

    hostname = parsed.hostname
    if not hostname:
        raise SSRFError("Invalid URL: no hostname")

    blocked_hostnames = {
        "localhost",
        "metadata",
        "metadata.google.internal",
        "kubernetes.default",
        "kubernetes.default.svc",
    }
    if hostname.lower() in blocked_hostnames or is_private_ip(hostname):
        raise SSRFError(f"Blocked hostname: {hostname}")

    try:
        addr_info = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror:
        # Unresolvable hosts fail at delivery time
        return
    for _, _, _, _, sockaddr in addr_info:
        ip = sockaddr[0]
        if is_private_ip(ip):
            raise SSRFError(f"URL resolves to private/restricted IP: {ip}")


# Signature header name
SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
EVENT_HEADER = "X-Webhook-Event"


def generate_signature(payload: str, secret: str, timestamp: str) -> str:
    """
    Generate HMAC-SHA256 signature for webhook payload.

    The signature is computed as: HMAC-SHA256(secret, timestamp + "." + payload)
    """
    message = f"{timestamp}.{payload}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: str, secret: str, timestamp: str, signature: str) -> bool:
    """Verify a webhook signature."""
    expected = generate_signature(payload, secret, timestamp)
    return hmac.compare_digest(expected, signature)


class WebhookDispatcher:
    """
    Delivers an event to the organization's matching webhooks.

    Usage:
        dispatcher = WebhookDispatcher(db)
        await dispatcher.dispatch(
            org_id=org.id,
            event_type="features.updated",
            environments=["production"],
            projects=["", "prj_web"],
        )
    """

    def __init__(
        self,
        db: AsyncSession,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        url_validator: Callable[[str], None] = validate_webhook_url,
    ):
        self.db = db
        self.timeout = timeout
        self.transport = transport
        self.url_validator = url_validator

    async def dispatch(
        self,
        org_id: UUID,
        event_type: str,
        environments: list[str],
        projects: list[str],
    ) -> int:
        """
        Send the event to every active webhook whose filters match.

        Returns the number of successful deliveries.
        """
        result = await self.db.execute(
            select(Webhook).where(
                Webhook.org_id == org_id,
                Webhook.is_active.is_(True),
            )
        )
        webhooks = [
            w for w in result.scalars().all()
            if w.matches(event_type, environments, projects)
        ]
        if not webhooks:
            return 0

        payload = {
            "event": event_type,
            "organization": str(org_id),
            "environments": environments,
            "projects": [p for p in projects if p],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        delivered = 0
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            for webhook in webhooks:
                if await self._deliver(client, webhook, event_type, payload):
                    delivered += 1

        await self.db.commit()
        return delivered

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        webhook: Webhook,
        event_type: str,
        payload: dict[str, Any],
    ) -> bool:
        """Deliver one event and record the attempt."""
        log = WebhookLog(
            webhook_id=webhook.id,
            event_type=event_type,
            payload=payload,
            success=False,
        )
        self.db.add(log)

        try:
            await asyncio.to_thread(self.url_validator, webhook.url)
        except SSRFError as e:
            logger.warning(
                "Webhook URL blocked by SSRF protection",
                webhook_id=str(webhook.id),
                url=webhook.url,
                error=str(e),
            )
            log.error_message = f"SSRF protection: {e}"
            return False

        timestamp = str(int(time.time()))
        json_payload = json.dumps(payload, default=str, sort_keys=True)

        headers = {
            "Content-Type": "application/json",
            "User-Agent": "Flagforge-Webhook/1.0",
            EVENT_HEADER: event_type,
            TIMESTAMP_HEADER: timestamp,
        }
        if webhook.secret:
            headers[SIGNATURE_HEADER] = generate_signature(json_payload, webhook.secret, timestamp)
        if webhook.headers:
            headers.update(webhook.headers)

        start_time = time.time()
        try:
            response = await client.post(webhook.url, content=json_payload, headers=headers)

            log.response_status = response.status_code
            log.response_time_ms = int((time.time() - start_time) * 1000)
            log.success = 200 <= response.status_code < 300

            if log.success:
                webhook.failure_count = 0
                webhook.last_triggered_at = datetime.now(timezone.utc)
            else:
                log.error_message = f"HTTP {response.status_code}"
                self._handle_failure(webhook)

        except httpx.TimeoutException:
            log.error_message = "Request timeout"
            log.response_time_ms = int(self.timeout * 1000)
            self._handle_failure(webhook)

        except httpx.RequestError as e:
            log.error_message = str(e)[:500]
            self._handle_failure(webhook)

        logger.info(
            "Webhook delivered" if log.success else "Webhook delivery failed",
            webhook_id=str(webhook.id),
            status=log.response_status,
            error=log.error_message,
        )
        return log.success

    def _handle_failure(self, webhook: Webhook) -> None:
        """Count a failure; disable the webhook after max_failures in a row."""
        webhook.failure_count += 1

        if webhook.failure_count >= webhook.max_failures:
            webhook.is_active = False
            logger.warning(
                "Webhook auto-disabled due to failures",
                webhook_id=str(webhook.id),
                failure_count=webhook.failure_count,
            )


class FeatureWebhookNotifier:
    """
    "feature.updated" hook handler.

    Each notification is dispatched in a detached task with its own
    database session, so the feature operation never waits on delivery.

    Usage:
        notifier = FeatureWebhookNotifier(get_session_factory())
        hooks.register("feature.updated", notifier, source="webhooks")
        ...
        await notifier.drain()  # on shutdown
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        url_validator: Callable[[str], None] = validate_webhook_url,
    ):
        self.session_factory = session_factory
        self.timeout = timeout
        self.transport = transport
        self.url_validator = url_validator
        self._tasks: set[asyncio.Task] = set()

    async def __call__(
        self,
        organization: UUID,
        environments: list[str],
        projects: list[str],
    ) -> None:
        task = asyncio.create_task(self.notify(organization, environments, projects))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def notify(
        self,
        organization: UUID,
        environments: list[str],
        projects: list[str],
    ) -> int:
        """Dispatch "features.updated" now. Errors are logged, not raised."""
        try:
            async with self.session_factory() as session:
                dispatcher = WebhookDispatcher(
                    session,
                    timeout=self.timeout,
                    transport=self.transport,
                    url_validator=self.url_validator,
                )
                return await dispatcher.dispatch(
                    organization,
                    FEATURES_UPDATED_EVENT,
                    environments,
                    projects,
                )
        except Exception:
            logger.exception("Webhook dispatch failed", organization=str(organization))
            return 0

    async def drain(self) -> None:
        """Wait for in-flight dispatches."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
