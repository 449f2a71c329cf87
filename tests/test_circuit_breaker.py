"""
Tests for the CircuitBreaker state machine.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from polaris_resilience.error_handling import CircuitBreaker, CircuitState
from polaris_resilience.exceptions import CircuitBreakerOpen, ConfigurationError

from conftest import AlwaysFails, FakeClock, ScriptedOperation


async def trip(breaker: CircuitBreaker, failures: int) -> None:
    """Drive ``failures`` failing calls through the breaker."""
    op = AlwaysFails(ConnectionError("database unreachable"))
    for _ in range(failures):
        with pytest.raises(ConnectionError):
            await breaker.execute(op)


class TestCircuitBreakerInitialization:
    """Construction and configuration."""

    def test_defaults(self):
        cb = CircuitBreaker()
        assert cb.failure_threshold == 5
        assert cb.recovery_timeout == 60.0
        assert cb.get_state() == {"state": "closed", "failures": 0, "last_failure_time": None}

    def test_custom_parameters(self, clock):
        cb = CircuitBreaker("ai_generation", failure_threshold=3, recovery_timeout=30, clock=clock)
        assert cb.name == "ai_generation"
        assert cb.failure_threshold == 3
        assert cb.recovery_timeout == 30
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.parametrize(
        "kwargs", [{"failure_threshold": 0}, {"recovery_timeout": -1}]
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigurationError):
            CircuitBreaker(**kwargs)


class TestClosedState:
    """Normal operation."""

    @pytest.mark.asyncio
    async def test_success_returns_value(self, breaker):
        assert await breaker.execute(ScriptedOperation(result="rows")) == "rows"
        assert breaker.get_state()["failures"] == 0

    @pytest.mark.asyncio
    async def test_failures_below_threshold_stay_closed(self, breaker, clock):
        await trip(breaker, 4)

        state = breaker.get_state()
        assert state["state"] == "closed"
        assert state["failures"] == 4
        assert state["last_failure_time"] == clock.now

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        await trip(breaker, 3)
        await breaker.execute(ScriptedOperation())
        assert breaker.get_state()["failures"] == 0
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_original_failure_propagates_unchanged(self, breaker):
        error = ValueError("constraint violated")
        with pytest.raises(ValueError) as exc_info:
            await breaker.execute(AlwaysFails(error))
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker, clock):
        """Five consecutive failures open a threshold-5 breaker."""
        await trip(breaker, 5)

        state = breaker.get_state()
        assert state["state"] == "open"
        assert state["failures"] == 5
        assert state["last_failure_time"] == clock.now
        assert breaker.is_open is True

    @pytest.mark.asyncio
    async def test_threshold_of_one(self, clock):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=10, clock=clock)
        await trip(cb, 1)
        assert cb.is_open is True

    @pytest.mark.asyncio
    async def test_opening_is_logged(self, breaker, caplog):
        await trip(breaker, 5)
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert "Circuit breaker 'database' opened after 5 failures" in warnings


class TestOpenState:
    """Fast-fail while cooling down."""

    @pytest.mark.asyncio
    async def test_fast_fails_without_invoking_operation(self, breaker, clock):
        await trip(breaker, 5)
        clock.advance(30)
        op = ScriptedOperation()

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            await breaker.execute(op)

        assert op.calls == 0
        assert exc_info.value.message == "Service temporarily unavailable"
        assert exc_info.value.service == "database"
        assert exc_info.value.failure_count == 5
        assert exc_info.value.timeout_remaining == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_rejection_does_not_change_state(self, breaker, clock):
        await trip(breaker, 5)
        before = breaker.get_state()

        for _ in range(3):
            with pytest.raises(CircuitBreakerOpen):
                await breaker.execute(ScriptedOperation())

        assert breaker.get_state() == before

    @pytest.mark.asyncio
    async def test_get_state_has_no_side_effects(self, breaker, clock):
        """Reading state after the cooldown does not start a trial."""
        await trip(breaker, 5)
        clock.advance(120)

        assert breaker.get_state()["state"] == "open"
        assert breaker.get_state()["state"] == "open"


class TestHalfOpenTrial:
    """Recovery probing once the cooldown has elapsed."""

    @pytest.mark.asyncio
    async def test_trial_success_closes(self, breaker, clock):
        await trip(breaker, 5)
        clock.advance(61)
        op = ScriptedOperation(result="recovered")

        assert await breaker.execute(op) == "recovered"

        assert op.calls == 1
        state = breaker.get_state()
        assert state["state"] == "closed"
        assert state["failures"] == 0

    @pytest.mark.asyncio
    async def test_trial_at_exact_cooldown(self, breaker, clock):
        await trip(breaker, 5)
        clock.advance(60)
        assert await breaker.execute(ScriptedOperation()) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_trial_failure_reopens_with_fresh_cooldown(self, breaker, clock):
        await trip(breaker, 5)
        first_failure = breaker.last_failure_time
        clock.advance(70)

        with pytest.raises(ConnectionError):
            await breaker.execute(AlwaysFails(ConnectionError("still down")))

        state = breaker.get_state()
        assert state["state"] == "open"
        assert state["failures"] >= breaker.failure_threshold
        assert state["last_failure_time"] > first_failure

        # A second immediate call is inside the new cooldown window
        op = ScriptedOperation()
        with pytest.raises(CircuitBreakerOpen):
            await breaker.execute(op)
        assert op.calls == 0

    @pytest.mark.asyncio
    async def test_only_one_trial_in_flight(self, breaker, clock):
        """Calls arriving while the trial runs are rejected."""
        await trip(breaker, 5)
        clock.advance(61)

        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_trial():
            started.set()
            await release.wait()
            return "trial"

        trial = asyncio.ensure_future(breaker.execute(slow_trial))
        await started.wait()
        assert breaker.state == CircuitState.HALF_OPEN

        concurrent = ScriptedOperation()
        with pytest.raises(CircuitBreakerOpen):
            await breaker.execute(concurrent)
        assert concurrent.calls == 0

        release.set()
        assert await trial == "trial"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_slot(self, breaker, clock):
        await trip(breaker, 5)
        clock.advance(61)

        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await breaker.execute(cancelled)

        assert breaker.state == CircuitState.OPEN
        assert await breaker.execute(ScriptedOperation()) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_logging(self, breaker, clock, caplog):
        await trip(breaker, 5)
        clock.advance(61)
        await breaker.execute(ScriptedOperation())

        infos = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert "Circuit breaker 'database' transitioned to half-open state" in infos


class TestLateOutcomes:
    """Results of calls admitted before the breaker opened."""

    @pytest.mark.asyncio
    async def test_late_success_does_not_close_open_breaker(self, clock):
        cb = CircuitBreaker(failure_threshold=2, recovery_timeout=60, clock=clock)
        release = asyncio.Event()

        async def slow_success():
            await release.wait()
            return "late"

        pending = asyncio.ensure_future(cb.execute(slow_success))
        await asyncio.sleep(0)
        await trip(cb, 2)
        assert cb.is_open

        release.set()
        assert await pending == "late"
        assert cb.is_open
        assert cb.get_state()["failures"] == 2


class TestRealClock:
    """Default clock behaviour."""

    @pytest.mark.asyncio
    async def test_timestamp_uses_wall_clock(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=3600)
        before = datetime.now(timezone.utc)
        await trip(cb, 1)
        after = datetime.now(timezone.utc)

        assert before <= cb.last_failure_time <= after
        with pytest.raises(CircuitBreakerOpen):
            await cb.execute(ScriptedOperation())

    @pytest.mark.asyncio
    async def test_timestamp_is_utc_aware(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=3600)
        await trip(cb, 1)

        assert cb.last_failure_time.tzinfo is not None
        assert cb.last_failure_time.utcoffset().total_seconds() == 0

    @pytest.mark.asyncio
    async def test_cooldown_is_measured_in_utc(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        await trip(cb, 1)

        # A failure stamped a minute in the past has cooled down regardless
        # of the host's local offset or DST transitions.
        cb.last_failure_time = datetime.now(timezone.utc) - timedelta(seconds=61)

        assert await cb.execute(ScriptedOperation(result="recovered")) == "recovered"
        assert cb.state == CircuitState.CLOSED
