"""
Notification Application Services
=================================

Best-effort, non-blocking delivery of pipeline outcomes.

`NotificationDispatcher.notify` only enqueues; a fixed pool of worker
tasks drains the queue. Each job fans out to email, webhook and Slack
concurrently, and a failing sink is logged without affecting the others.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple

from autoresponder.config.runtime import IntegrationSettings, SlackIntegration, WebhookIntegration
from autoresponder.infrastructure.mail import IMailClient, OutgoingEmail
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


# ========== Sink Interfaces ==========

class IWebhookSink(ABC):
    @abstractmethod
    async def deliver(
        self,
        config: WebhookIntegration,
        event: str,
        data: Mapping[str, Any],
        timestamp: datetime
    ) -> bool:
        """Deliver one event; False when skipped."""


class ISlackSink(ABC):
    @abstractmethod
    async def deliver(
        self,
        config: SlackIntegration,
        event: str,
        data: Mapping[str, Any],
        timestamp: datetime
    ) -> bool:
        """Deliver one event; False when skipped."""


# ========== Dispatch Queue ==========

class DispatchQueue:
    """
    Bounded job queue drained by N worker tasks.

    `submit` never blocks the caller: when the queue is full the job is
    dropped with a warning. `drain` waits for every queued job to finish.
    """

    def __init__(self, workers: int = 4, maxsize: int = 1000):
        self._worker_count = workers
        self._queue: asyncio.Queue[Tuple[str, Job]] = asyncio.Queue(maxsize=maxsize)
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._workers:
            logger.warning("Dispatch queue already running")
            return

        self._workers = [
            asyncio.create_task(self._worker(index), name=f"dispatch-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Dispatch queue started", extra={"workers": self._worker_count})

    def submit(self, name: str, job: Job) -> bool:
        """Enqueue a job; returns False when it was dropped."""
        try:
            self._queue.put_nowait((name, job))
        except asyncio.QueueFull:
            logger.warning("Dispatch queue full, dropping job", extra={"job": name})
            return False
        return True

    async def drain(self) -> None:
        await self._queue.join()

    async def stop(self, timeout: float = 10.0) -> None:
        """Let queued jobs finish (up to `timeout`), then stop the workers."""
        if not self._workers:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Dispatch queue stopped with jobs pending", extra={"pending": self.pending})

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Dispatch queue stopped")

    async def _worker(self, index: int) -> None:
        while True:
            name, job = await self._queue.get()
            try:
                await job()
            except Exception as e:
                logger.error(
                    "Dispatch job failed",
                    extra={"job": name, "worker": index, "error": str(e)}
                )
            finally:
                self._queue.task_done()


# ========== Dispatcher ==========

class NotificationDispatcher:
    """
    Fans one pipeline event out to email, webhook and Slack.

    The integration snapshot is taken by the caller at commit time, so a
    settings change after commit does not affect an already queued job.
    """

    def __init__(
        self,
        queue: DispatchQueue,
        mail_client: Optional[IMailClient],
        webhook_sink: IWebhookSink,
        slack_sink: ISlackSink
    ):
        self._queue = queue
        self._mail = mail_client
        self._webhooks = webhook_sink
        self._slack = slack_sink

    def notify(
        self,
        event: str,
        data: Mapping[str, Any],
        integrations: IntegrationSettings,
        email: Optional[OutgoingEmail] = None
    ) -> bool:
        """Enqueue delivery of one event; never raises and never waits."""
        timestamp = datetime.now(timezone.utc)
        payload = dict(data)

        async def job() -> None:
            await self.deliver(event, payload, integrations, email, timestamp)

        return self._queue.submit(event, job)

    async def deliver(
        self,
        event: str,
        data: Mapping[str, Any],
        integrations: IntegrationSettings,
        email: Optional[OutgoingEmail] = None,
        timestamp: Optional[datetime] = None
    ) -> List[Any]:
        """Run every sink concurrently and log the ones that failed."""
        timestamp = timestamp or datetime.now(timezone.utc)
        sinks = ("email", "webhook", "slack")

        results = await asyncio.gather(
            self._send_email(integrations, email),
            self._webhooks.deliver(integrations.webhooks, event, data, timestamp),
            self._slack.deliver(integrations.slack, event, data, timestamp),
            return_exceptions=True,
        )

        for sink, result in zip(sinks, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Notification delivery failed",
                    extra={"event": event, "sink": sink, "error": str(result)}
                )

        return list(results)

    async def _send_email(self, integrations: IntegrationSettings, email: Optional[OutgoingEmail]) -> bool:
        if email is None or not email.to:
            return False
        if not integrations.email.enabled or self._mail is None:
            logger.debug("Email integration disabled, skipping email", extra={"subject": email.subject})
            return False
        await self._mail.send(email)
        return True
