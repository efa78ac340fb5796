"""Tests for the retry policy and reconnect backoff schedule."""

import pytest

from src.connector.connection.retry import ExponentialBackoff, Outcome, RetryPolicy
from src.connector.enums import ErrorKind
from src.connector.exceptions import NetworkError, ProtocolError
from tests.unit.connector.helpers import RecordingSleep


class ScriptedOperation:
    """Returns queued outcomes one per call."""

    def __init__(self, *outcomes: Outcome[str]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> Outcome[str]:
        self.calls += 1
        return self.outcomes.pop(0)


def network_failure() -> Outcome[str]:
    return Outcome.failure(ErrorKind.NETWORK, NetworkError("connection refused"))


class TestRetryPolicy:
    """Test bounded retry driven by the outcome kind."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        """No retry and no sleep when the first attempt works."""
        sleep = RecordingSleep()
        operation = ScriptedOperation(Outcome.success("ok"))

        result = await RetryPolicy(sleep=sleep).run(operation)

        assert result == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_network_failures_are_retried(self):
        """Transient failures are retried with the fixed delay."""
        sleep = RecordingSleep()
        operation = ScriptedOperation(
            network_failure(), network_failure(), Outcome.success("ok")
        )

        result = await RetryPolicy(max_attempts=3, delay=2.0, sleep=sleep).run(operation)

        assert result == "ok"
        assert operation.calls == 3
        assert sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_network_error_after_budget(self):
        """The last network error surfaces once the budget is spent."""
        sleep = RecordingSleep()
        operation = ScriptedOperation(*(network_failure() for _ in range(3)))

        with pytest.raises(NetworkError):
            await RetryPolicy(max_attempts=3, delay=2.0, sleep=sleep).run(operation)

        assert operation.calls == 3
        assert sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_protocol_errors_are_not_retried(self):
        """Non-network failures surface on first occurrence."""
        sleep = RecordingSleep()
        error = ProtocolError("HTTP 500", status_code=500)
        operation = ScriptedOperation(Outcome.failure(ErrorKind.PROTOCOL, error))

        with pytest.raises(ProtocolError) as exc_info:
            await RetryPolicy(sleep=sleep).run(operation)

        assert exc_info.value is error
        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.parametrize(
        ("kind", "retried"), [(ErrorKind.NETWORK, True), (ErrorKind.PROTOCOL, False)]
    )
    def test_every_error_kind_has_a_decision(self, kind, retried):
        """Each failure kind the adapters produce maps to one retry decision."""
        assert set(ErrorKind) == {ErrorKind.NETWORK, ErrorKind.PROTOCOL}
        outcome = Outcome.failure(kind, NetworkError("x"))

        assert RetryPolicy(max_attempts=3).should_retry(outcome, attempt=1) is retried

    def test_rejects_empty_budget(self):
        """At least one attempt is required."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestExponentialBackoff:
    """Test the reconnect delay schedule."""

    def test_delays_double_from_two_seconds(self):
        """Attempt N waits base ** N seconds."""
        backoff = ExponentialBackoff(base=2.0, max_attempts=5)

        assert [backoff.delay(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 16.0, 32.0]

    def test_exhausted_at_max_attempts(self):
        """No further attempt once max_attempts have been made."""
        backoff = ExponentialBackoff(max_attempts=5)

        assert not backoff.exhausted(4)
        assert backoff.exhausted(5)
