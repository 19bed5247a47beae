import pytest

from batchmdcs.retry import retry_linear


class Flaky:
    def __init__(self, failures, exc_type=ConnectionError):
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type(f"failure {self.calls}")
        return "ok"


def _transient(exc):
    return isinstance(exc, ConnectionError)


def test_retries_transient_failures_with_fixed_interval():
    sleeps = []
    func = Flaky(failures=2)

    result = retry_linear(
        func, is_transient=_transient, interval=10.0, max_retries=5, sleep=sleeps.append
    )

    assert result == "ok"
    assert func.calls == 3
    assert sleeps == [10.0, 10.0]


def test_gives_up_after_max_retries():
    sleeps = []
    func = Flaky(failures=10)

    with pytest.raises(ConnectionError, match="failure 6"):
        retry_linear(func, is_transient=_transient, max_retries=5, sleep=sleeps.append)

    assert func.calls == 6
    assert len(sleeps) == 5


def test_non_transient_errors_are_not_retried():
    func = Flaky(failures=1, exc_type=ValueError)

    with pytest.raises(ValueError):
        retry_linear(func, is_transient=_transient, sleep=lambda s: None)

    assert func.calls == 1
