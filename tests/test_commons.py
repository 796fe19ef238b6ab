import pytest

from commons import generate_job_id, with_retry


def test_job_id_format():
    job_id = generate_job_id()

    assert job_id.startswith("job_")
    assert len(job_id) == 8


def test_with_retry_backs_off_then_succeeds():
    delays = []
    outcomes = iter([ValueError("one"), ValueError("two"), "ok"])

    def flaky():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert with_retry(flaky, max_attempts=3, delay=1.0, backoff=2.0, sleep=delays.append) == "ok"
    assert delays == [1.0, 2.0]


def test_with_retry_reraises_last_error():
    calls = []

    def always_fails():
        calls.append(1)
        raise ValueError(f"attempt {len(calls)}")

    with pytest.raises(ValueError, match="attempt 2"):
        with_retry(always_fails, max_attempts=2, sleep=lambda _s: None)


def test_with_retry_only_retries_listed_errors():
    calls = []

    def wrong_kind():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        with_retry(wrong_kind, retry_on=(ValueError,), sleep=lambda _s: None)
    assert len(calls) == 1


def test_with_retry_rejects_zero_attempts():
    with pytest.raises(ValueError):
        with_retry(lambda: None, max_attempts=0)
