import pytest
from sqlalchemy.exc import IntegrityError

from quoteflow.utils import retry
from quoteflow.utils.retry import is_unique_violation, with_retry


class UniqueViolation(Exception):
    code = "23505"


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(retry.time, "sleep", calls.append)
    return calls


def test_returns_first_success_without_sleeping(sleeps):
    assert with_retry(lambda: 42) == 42
    assert sleeps == []


def test_backoff_doubles_until_success(sleeps):
    attempts = []

    def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise UniqueViolation()
        return "ok"

    assert with_retry(operation, base_delay_ms=100) == "ok"
    assert len(attempts) == 3
    assert sleeps == [0.1, 0.2]


def test_gives_up_after_max_retries(sleeps):
    attempts = []

    def operation():
        attempts.append(1)
        raise UniqueViolation()

    with pytest.raises(UniqueViolation):
        with_retry(operation, max_retries=2, base_delay_ms=10)
    assert len(attempts) == 3
    assert sleeps == [0.01, 0.02]


def test_non_retryable_error_raises_immediately(sleeps):
    attempts = []

    def operation():
        attempts.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        with_retry(operation)
    assert len(attempts) == 1
    assert sleeps == []


def test_unique_violation_detection():
    sqlite_error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: quotations.quotation_number"))
    fk_error = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))
    assert is_unique_violation(UniqueViolation())
    assert is_unique_violation(sqlite_error)
    assert not is_unique_violation(fk_error)
    assert not is_unique_violation(RuntimeError("boom"))
