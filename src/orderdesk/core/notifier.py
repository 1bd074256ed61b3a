"""
Best-effort notifications.

A notification is fired after a business write has committed. Delivery is
attempted on a bounded worker pool, bounded by a deadline, and its outcome
is only ever logged: the request that triggered it never fails because of
it.

Lifecycle of one attempt::

    dispatched -> attempting -> completed
                             -> failed (transport error or deadline)

The request path waits at most ``grace_period`` seconds for the attempt,
which is long enough to log fast failures next to the request that caused
them. The attempt itself keeps running in the background until it finishes
or hits ``deadline``; a transport call still running at the deadline is
abandoned and its eventual result discarded.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from orderdesk.shared import Logger

logger = Logger(__name__).get_logger()


class NotificationError(Exception):
    """Base class for notification failures. Never leaves the notifier."""


class NotificationTimeout(NotificationError):
    pass


class NotificationTransportFailure(NotificationError):
    pass


class NotificationOutcome(StrEnum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class NotificationTask:
    recipient: str
    subject: str
    html: str
    text: str = ""
    reply_to: str | None = None
    label: str = "notification"  # shows up in logs, e.g. "order 12"


class Transport(Protocol):
    def send(self, task: NotificationTask) -> bool | None:
        """Deliver ``task``. Raise or return ``False`` on failure. May block."""


class Notifier:
    def __init__(
        self,
        transport: Transport,
        grace_period: float = 2.0,
        deadline: float = 30.0,
        max_workers: int = 4,
    ):
        self._transport = transport
        self.grace_period = grace_period
        self.deadline = deadline

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notifier"
        )
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, task: NotificationTask) -> asyncio.Task:
        """Schedule delivery of ``task`` and return immediately."""
        attempt = asyncio.get_running_loop().create_task(
            self._attempt(task), name=f"notify:{task.label}"
        )
        self._pending.add(attempt)
        attempt.add_done_callback(self._pending.discard)

        logger.debug("Dispatched notification for %s", task.label)
        return attempt

    async def notify(self, task: NotificationTask) -> None:
        """Fire-and-forget with a short grace wait. Never raises for delivery."""
        attempt = self.dispatch(task)

        done, _ = await asyncio.wait({attempt}, timeout=self.grace_period)
        if not done:
            logger.info("Notification for %s still in progress (background)", task.label)
        elif attempt.result() is not NotificationOutcome.COMPLETED:
            logger.debug("Continuing without notification for %s", task.label)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Give outstanding attempts ``timeout`` seconds, then cancel them."""
        if self._pending:
            logger.info("Draining %d pending notification(s)", len(self._pending))
            _, unfinished = await asyncio.wait(set(self._pending), timeout=timeout)

            for attempt in unfinished:
                attempt.cancel()
            if unfinished:
                logger.warning("Cancelled %d unfinished notification(s)", len(unfinished))
                await asyncio.gather(*unfinished, return_exceptions=True)

        self._executor.shutdown(wait=False, cancel_futures=True)

    async def _attempt(self, task: NotificationTask) -> NotificationOutcome:
        try:
            await self._deliver(task)

        except NotificationTimeout as e:
            logger.error("Notification for %s timed out: %s", task.label, e)
            return NotificationOutcome.TIMED_OUT

        except NotificationTransportFailure as e:
            logger.error("Notification for %s failed: %s", task.label, e)
            return NotificationOutcome.FAILED

        except asyncio.CancelledError:
            logger.warning("Notification for %s cancelled", task.label)
            raise

        logger.info("Notification for %s sent to %s", task.label, task.recipient)
        return NotificationOutcome.COMPLETED

    async def _deliver(self, task: NotificationTask) -> None:
        loop = asyncio.get_running_loop()

        try:
            call = loop.run_in_executor(self._executor, self._transport.send, task)
        except RuntimeError as e:  # pool already shut down
            raise NotificationTransportFailure(str(e)) from e

        done, _ = await asyncio.wait({call}, timeout=self.deadline)
        if not done:
            # The worker thread keeps running; its result is discarded
            call.cancel()
            raise NotificationTimeout(f"no result after {self.deadline:g}s")

        try:
            result = call.result()
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationTransportFailure(str(e) or type(e).__name__) from e

        if result is False:
            raise NotificationTransportFailure("transport reported failure")
