import pytest

from geph.retry import DatabaseFailed, db_retry


class Flaky:
    def __init__(self, failures, result="done"):
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise DatabaseFailed(f"contention {self.calls}")
        return self.result


def test_success_first_time_does_not_sleep():
    sleeps = []
    action = Flaky(0, result=42)
    assert db_retry(action, sleep=sleeps.append) == 42
    assert action.calls == 1
    assert sleeps == []


def test_recovers_after_failures():
    sleeps = []
    action = Flaky(2, result="ok")
    assert db_retry(action, sleep=sleeps.append) == "ok"
    assert action.calls == 3
    assert len(sleeps) == 2


def test_gives_up_after_repeated_failures():
    sleeps = []
    action = Flaky(100)
    with pytest.raises(DatabaseFailed, match="contention 6"):
        db_retry(action, sleep=sleeps.append)
    assert action.calls == 6
    assert len(sleeps) == 5


def test_succeeds_on_last_allowed_attempt():
    sleeps = []
    action = Flaky(5, result="late")
    assert db_retry(action, sleep=sleeps.append) == "late"
    assert len(sleeps) == action.calls - 1


def test_backoff_grows_strictly():
    for _ in range(20):
        sleeps = []
        with pytest.raises(DatabaseFailed):
            db_retry(Flaky(100), sleep=sleeps.append)
        assert all(a < b for a, b in zip(sleeps, sleeps[1:]))
        assert all(s > 0 for s in sleeps)


def test_backoff_doubles_range():
    for _ in range(20):
        sleeps = []
        with pytest.raises(DatabaseFailed):
            db_retry(Flaky(100), sleep=sleeps.append)
        # each delay lies below twice the next delay's lower bound
        for earlier, later in zip(sleeps, sleeps[1:]):
            assert later < 4 * earlier


def test_other_errors_propagate_without_retry():
    sleeps = []
    calls = []

    def action():
        calls.append(1)
        raise KeyError("missing")

    with pytest.raises(KeyError):
        db_retry(action, sleep=sleeps.append)
    assert calls == [1]
    assert sleeps == []