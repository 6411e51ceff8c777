"""
Notification External Services
==============================

HTTP sinks for outbound notifications:
- Generic webhook (signed JSON envelope)
- Slack-style incoming webhook, behind a circuit breaker

Both make a single attempt per event and raise DeliveryException on
failure; the dispatcher decides what to do with it.
"""

import time
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import httpx

from autoresponder.config.runtime import SlackIntegration, WebhookIntegration
from autoresponder.core import DeliveryException
from autoresponder.intake.domain import sign_payload
from autoresponder.notifications.application import IWebhookSink, ISlackSink
from autoresponder.notifications.domain import build_envelope, encode_envelope, build_slack_payload
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "AI-Support-Autoresponder/1.0"


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for a flaky downstream.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow a test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class _HTTPSink:
    """Shared lazily-created httpx client."""

    def __init__(self, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self._timeout = timeout
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class WebhookClient(_HTTPSink, IWebhookSink):
    """POSTs the signed event envelope to the configured webhook URL."""

    async def deliver(
        self,
        config: WebhookIntegration,
        event: str,
        data: Mapping[str, Any],
        timestamp: datetime
    ) -> bool:
        """
        Send one event if the webhook subscribes to it.

        Returns:
            True if delivered, False if skipped

        Raises:
            DeliveryException: On transport error or a non-2xx reply
        """
        if not config.wants(event):
            return False

        body = encode_envelope(build_envelope(event, data, timestamp))
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event,
            "User-Agent": USER_AGENT,
        }
        if config.secret:
            headers["X-Webhook-Signature"] = sign_payload(body, config.secret)

        try:
            client = await self._get_client()
            response = await client.post(config.url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryException("webhook", str(e), {"event": event})

        if not response.is_success:
            raise DeliveryException(
                "webhook",
                f"HTTP {response.status_code}",
                {"event": event, "status_code": response.status_code}
            )

        logger.info("Webhook delivered", extra={"event": event, "status_code": response.status_code})
        return True


class SlackClient(_HTTPSink, ISlackSink):
    """Posts formatted event messages to a Slack-style incoming webhook."""

    def __init__(
        self,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        super().__init__(timeout, client)
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def deliver(
        self,
        config: SlackIntegration,
        event: str,
        data: Mapping[str, Any],
        timestamp: datetime
    ) -> bool:
        """
        Send one event if Slack subscribes to it and the circuit is closed.

        Raises:
            DeliveryException: On transport error or a non-2xx reply
        """
        if not config.wants(event):
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack notification", extra={"event": event})
            return False

        payload: Dict[str, Any] = build_slack_payload(event, data, timestamp, config.channel)

        try:
            client = await self._get_client()
            response = await client.post(config.webhook_url, json=payload)
        except httpx.HTTPError as e:
            self._circuit_breaker.record_failure()
            raise DeliveryException("slack", str(e), {"event": event})

        if not response.is_success:
            self._circuit_breaker.record_failure()
            raise DeliveryException(
                "slack",
                f"HTTP {response.status_code}",
                {"event": event, "status_code": response.status_code}
            )

        self._circuit_breaker.record_success()
        logger.info("Slack notification sent", extra={"event": event})
        return True
