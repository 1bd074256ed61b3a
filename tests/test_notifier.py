import asyncio
import logging
import threading
from time import perf_counter

import pytest

from orderdesk.core.notifier import NotificationOutcome, NotificationTask, Notifier

NOTIFIER_LOGGER = "orderdesk.core.notifier"


class BlockingTransport:
    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def send(self, task):
        self.calls += 1
        self.release.wait(timeout=10)


class FailingTransport:
    def send(self, task):
        raise ConnectionError("smtp unreachable")


class RefusingTransport:
    def send(self, task):
        return False


class OkTransport:
    def __init__(self):
        self.sent = []

    def send(self, task):
        self.sent.append(task)
        return True


@pytest.fixture
def task():
    return NotificationTask(
        recipient="admin@example.com",
        subject="New order #1",
        html="<p>hi</p>",
        label="order 1",
    )


def error_records(caplog):
    return [
        r for r in caplog.records if r.name == NOTIFIER_LOGGER and r.levelno == logging.ERROR
    ]


def test_notify_returns_within_grace_period_while_transport_blocks(task):
    transport = BlockingTransport()
    notifier = Notifier(transport, grace_period=0.2, deadline=10.0)

    async def scenario():
        start = perf_counter()
        await notifier.notify(task)
        elapsed = perf_counter() - start
        assert notifier.pending == 1
        transport.release.set()
        await notifier.shutdown(timeout=2.0)
        return elapsed

    elapsed = asyncio.run(scenario())

    assert 0.15 <= elapsed < 1.0
    assert transport.calls == 1


def test_failing_transport_is_isolated_and_logged_once_per_notify(task, caplog):
    notifier = Notifier(FailingTransport(), grace_period=1.0, deadline=2.0)

    async def scenario():
        for _ in range(3):
            await notifier.notify(task)
        await notifier.shutdown(timeout=1.0)

    with caplog.at_level(logging.DEBUG, logger=NOTIFIER_LOGGER):
        asyncio.run(scenario())

    failures = error_records(caplog)
    assert len(failures) == 3
    assert all("smtp unreachable" in r.getMessage() for r in failures)
    warnings = [
        r for r in caplog.records if r.name == NOTIFIER_LOGGER and r.levelno >= logging.WARNING
    ]
    assert warnings == failures


def test_transport_returning_false_counts_as_failure(task):
    notifier = Notifier(RefusingTransport(), grace_period=1.0, deadline=2.0)

    async def scenario():
        outcome = await notifier.dispatch(task)
        await notifier.shutdown(timeout=1.0)
        return outcome

    assert asyncio.run(scenario()) is NotificationOutcome.FAILED


def test_deadline_abandons_transport_and_logs_one_timeout(task, caplog):
    transport = BlockingTransport()
    notifier = Notifier(transport, grace_period=1.0, deadline=0.1)

    async def scenario():
        outcome = await notifier.dispatch(task)
        await notifier.shutdown(timeout=1.0)
        return outcome

    with caplog.at_level(logging.DEBUG, logger=NOTIFIER_LOGGER):
        try:
            outcome = asyncio.run(scenario())
        finally:
            transport.release.set()

    assert outcome is NotificationOutcome.TIMED_OUT
    failures = error_records(caplog)
    assert len(failures) == 1
    assert "timed out" in failures[0].getMessage()


def test_successful_delivery(task):
    transport = OkTransport()
    notifier = Notifier(transport, grace_period=1.0, deadline=2.0)

    async def scenario():
        outcome = await notifier.dispatch(task)
        await notifier.shutdown(timeout=1.0)
        return outcome

    assert asyncio.run(scenario()) is NotificationOutcome.COMPLETED
    assert transport.sent == [task]


def test_shutdown_cancels_attempts_that_outlive_the_drain(task):
    transport = BlockingTransport()
    notifier = Notifier(transport, grace_period=0.0, deadline=30.0)

    async def scenario():
        attempt = notifier.dispatch(task)
        await asyncio.sleep(0)
        await notifier.shutdown(timeout=0.1)
        return attempt

    try:
        attempt = asyncio.run(scenario())
    finally:
        transport.release.set()

    assert attempt.cancelled()
    assert notifier.pending == 0


def test_concurrent_notifications_do_not_block_each_other(task):
    transport = OkTransport()
    notifier = Notifier(transport, grace_period=1.0, deadline=2.0, max_workers=4)
    tasks = [
        NotificationTask(recipient=f"admin{i}@example.com", subject="s", html="b", label=f"order {i}")
        for i in range(5)
    ]

    async def scenario():
        outcomes = await asyncio.gather(*(notifier.dispatch(t) for t in tasks))
        await notifier.shutdown(timeout=1.0)
        return outcomes

    outcomes = asyncio.run(scenario())

    assert outcomes == [NotificationOutcome.COMPLETED] * 5
    assert sorted(t.recipient for t in transport.sent) == sorted(t.recipient for t in tasks)
