"""In-process email queue with a background drain loop.

Messages are delivered FIFO by a single asyncio task. A failed send is
re-queued after retry_delay * 2 ** (retries - 1) seconds; after max_retries
failed retries the message is logged as a permanent failure and dropped.

The queue is process-local and best-effort: messages still waiting when the
process exits are lost. One instance is created in the application lifespan
and stored on app.state.

Usage:
    queue = EmailQueue(transport=mailgun_client)
    queue.start()
    await queue.add(EmailMessage(to="a@b.com", subject="Hi", html="<p>Hi</p>"))
    ...
    await queue.stop()
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from seohub.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email."""

    to: str
    subject: str
    html: str


class EmailTransport(Protocol):
    """Anything that can deliver an EmailMessage (MailgunClient in production)."""

    async def send(self, message: EmailMessage) -> bool: ...


@dataclass
class _QueueEntry:
    message: EmailMessage
    retries: int = 0


class EmailQueue:
    """FIFO email queue drained by a background task.

    Attributes:
        transport: Delivery backend, or None to drop messages with a warning.
        max_retries: Re-queue attempts after the first failure.
        retry_delay: Base backoff in seconds.
    """

    def __init__(
        self,
        transport: EmailTransport | None,
        max_retries: int = 3,
        retry_delay: float = 5.0,
    ):
        self.transport = transport
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._queue: asyncio.Queue[_QueueEntry] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._pending_retries: set[asyncio.Task[None]] = set()

    def size(self) -> int:
        """Number of messages waiting (excluding scheduled retries)."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def add(self, message: EmailMessage) -> None:
        """Enqueue a message for delivery."""
        await self._queue.put(_QueueEntry(message=message))
        log.debug("email_queued", to=message.to, subject=message.subject, queue_size=self.size())

    def start(self) -> None:
        """Start the drain loop (no-op if already running)."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._drain(), name="email-queue-drain")
        log.info("email_queue_started", max_retries=self.max_retries, retry_delay=self.retry_delay)

    async def stop(self) -> None:
        """Cancel the drain loop and any scheduled retries."""
        tasks = list(self._pending_retries)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending_retries.clear()
        self._worker = None
        log.info("email_queue_stopped", dropped=self.size())

    async def join(self) -> None:
        """Wait until every queued message is delivered or dropped, retries included."""
        while True:
            await self._queue.join()
            if not self._pending_retries:
                return
            await asyncio.gather(*self._pending_retries, return_exceptions=True)

    async def _drain(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._deliver(entry)
            finally:
                self._queue.task_done()

    async def _deliver(self, entry: _QueueEntry) -> None:
        message = entry.message
        if self.transport is None:
            log.warning("email_transport_not_configured", to=message.to, subject=message.subject)
            return

        try:
            delivered = await self.transport.send(message)
        except Exception as e:
            log.error(
                "email_send_error",
                to=message.to,
                subject=message.subject,
                error=str(e),
                exc_info=True,
            )
            delivered = False

        if delivered:
            log.info("email_sent", to=message.to, subject=message.subject, retries=entry.retries)
            return

        if entry.retries >= self.max_retries:
            log.error(
                "email_send_failed_permanently",
                to=message.to,
                subject=message.subject,
                retries=entry.retries,
            )
            return

        entry.retries += 1
        delay = self.retry_delay * 2 ** (entry.retries - 1)
        log.warning(
            "email_send_retry_scheduled",
            to=message.to,
            subject=message.subject,
            retries=entry.retries,
            delay_seconds=delay,
        )
        task = asyncio.create_task(self._requeue_later(entry, delay))
        self._pending_retries.add(task)
        task.add_done_callback(self._pending_retries.discard)

    async def _requeue_later(self, entry: _QueueEntry, delay: float) -> None:
        await asyncio.sleep(delay)
        self._queue.put_nowait(entry)
