"""Tests for the service poller."""
import asyncio

import pytest

from devscope.core.models import ServiceRecord
from devscope.parallel.monitor import PollerState, ServicePoller

SERVICE = ServiceRecord(pid=1234, name="node", port=3000, command="node server.js")


class CountingFetch:
    """Fetch function that records how often it was called."""

    def __init__(self, result=None, errors=0):
        self.calls = 0
        self.result = [SERVICE] if result is None else result
        self.errors = errors

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.errors:
            raise RuntimeError("lsof unavailable")
        return self.result


def test_start_fetches_immediately():
    """start() performs one fetch before returning."""
    async def scenario():
        fetch = CountingFetch()
        poller = ServicePoller(fetch, interval_ms=1000)
        received = []
        poller.add_listener(received.append)

        await poller.start()
        calls_after_start = fetch.calls
        poller.stop()
        return calls_after_start, received, poller

    calls, received, poller = asyncio.run(scenario())
    assert calls == 1
    assert received == [[SERVICE]]
    assert poller.state is PollerState.IDLE


def test_start_then_stop_fetches_once():
    """Stopping right after start prevents further fetches."""
    async def scenario():
        fetch = CountingFetch()
        poller = ServicePoller(fetch, interval_ms=20)
        await poller.start()
        poller.stop()
        await asyncio.sleep(0.1)
        return fetch.calls, poller.fetch_count

    calls, fetch_count = asyncio.run(scenario())
    assert calls == 1
    assert fetch_count == 1


def test_polls_on_interval():
    """While polling, fetches repeat every interval."""
    async def scenario():
        fetch = CountingFetch()
        poller = ServicePoller(fetch, interval_ms=10)
        await poller.start()
        await asyncio.sleep(0.1)
        poller.stop()
        return fetch.calls

    assert asyncio.run(scenario()) >= 3


def test_start_is_idempotent():
    """A second start() while polling does nothing."""
    async def scenario():
        fetch = CountingFetch()
        poller = ServicePoller(fetch, interval_ms=1000)
        await poller.start()
        await poller.start()
        calls = fetch.calls
        poller.stop()
        return calls

    assert asyncio.run(scenario()) == 1


def test_stop_is_idempotent():
    """stop() when idle, or twice, is harmless."""
    async def scenario():
        poller = ServicePoller(CountingFetch(), interval_ms=1000)
        poller.stop()
        await poller.start()
        poller.stop()
        poller.stop()
        return poller

    poller = asyncio.run(scenario())
    assert poller.is_polling is False


def test_restart_after_stop():
    """A stopped poller can be started again."""
    async def scenario():
        fetch = CountingFetch()
        poller = ServicePoller(fetch, interval_ms=1000)
        await poller.start()
        poller.stop()
        await poller.start()
        state = poller.state
        poller.stop()
        return fetch.calls, state

    calls, state = asyncio.run(scenario())
    assert calls == 2
    assert state is PollerState.POLLING


def test_stop_during_first_fetch_discards_result():
    """A fetch that completes after stop() is not published."""
    async def scenario():
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            return [SERVICE]

        poller = ServicePoller(fetch, interval_ms=10)
        received = []
        poller.add_listener(received.append)

        start_task = asyncio.ensure_future(poller.start())
        await asyncio.sleep(0)
        poller.stop()
        gate.set()
        await start_task
        await asyncio.sleep(0.05)
        return received, poller

    received, poller = asyncio.run(scenario())
    assert received == []
    assert poller.fetch_count == 1
    assert poller.is_polling is False


def test_cancelled_start_can_be_restarted():
    """Cancelling start() mid-fetch leaves the poller idle and restartable."""
    async def scenario():
        calls = []

        async def fetch():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return [SERVICE]

        poller = ServicePoller(fetch, interval_ms=1000)
        start_task = asyncio.ensure_future(poller.start())
        await asyncio.sleep(0.01)
        start_task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await start_task
        state_after_cancel = poller.state

        await poller.start()
        state_after_restart = poller.state
        has_task = poller._task is not None
        poller.stop()
        return state_after_cancel, state_after_restart, has_task, len(calls)

    after_cancel, after_restart, has_task, calls = asyncio.run(scenario())
    assert after_cancel is PollerState.IDLE
    assert after_restart is PollerState.POLLING
    assert has_task is True
    assert calls == 2


def test_failing_error_callback_on_first_fetch_resets_state():
    """If on_error raises during start(), the poller returns to idle."""
    def on_error(error):
        raise RuntimeError("callback broke")

    async def scenario():
        fetch = CountingFetch(errors=1)
        poller = ServicePoller(fetch, interval_ms=1000, on_error=on_error)
        with pytest.raises(RuntimeError, match="callback broke"):
            await poller.start()
        state_after_failure = poller.state

        await poller.start()
        state_after_restart = poller.state
        poller.stop()
        return state_after_failure, state_after_restart, fetch.calls

    after_failure, after_restart, calls = asyncio.run(scenario())
    assert after_failure is PollerState.IDLE
    assert after_restart is PollerState.POLLING
    assert calls == 2


def test_errors_are_reported_and_polling_continues():
    """A failed poll calls on_error; the next cycle still runs."""
    async def scenario():
        fetch = CountingFetch(errors=1)
        errors = []
        received = []
        poller = ServicePoller(fetch, interval_ms=10, on_error=errors.append)
        poller.add_listener(received.append)
        await poller.start()
        await asyncio.sleep(0.1)
        poller.stop()
        return errors, received

    errors, received = asyncio.run(scenario())
    assert len(errors) == 1
    assert str(errors[0]) == "lsof unavailable"
    assert received


def test_failing_listener_does_not_stop_others():
    """Listener exceptions are contained."""
    async def scenario():
        received = []

        def broken(_services):
            raise ValueError("render failed")

        poller = ServicePoller(CountingFetch(), interval_ms=1000)
        poller.add_listener(broken)
        poller.add_listener(received.append)
        await poller.start()
        poller.stop()
        return received

    assert asyncio.run(scenario()) == [[SERVICE]]


def test_remove_listener():
    """Removed listeners are not notified."""
    async def scenario():
        received = []
        poller = ServicePoller(CountingFetch(), interval_ms=1000)
        poller.add_listener(received.append)
        poller.remove_listener(received.append)
        await poller.refresh()
        return received

    assert asyncio.run(scenario()) == []


def test_refresh_propagates_errors():
    """A failed manual refresh raises to the caller."""
    async def scenario():
        poller = ServicePoller(CountingFetch(errors=1), interval_ms=1000)
        await poller.refresh()

    with pytest.raises(RuntimeError, match="lsof unavailable"):
        asyncio.run(scenario())


def test_refresh_does_not_start_polling():
    """refresh() returns the services and leaves the state alone."""
    async def scenario():
        poller = ServicePoller(CountingFetch(), interval_ms=1000)
        services = await poller.refresh()
        return services, poller.state

    services, state = asyncio.run(scenario())
    assert services == [SERVICE]
    assert state is PollerState.IDLE
