from __future__ import annotations

import pytest

from compat_log_triage.core import limiter as limiter_module
from compat_log_triage.core.errors import IntakeRejected
from compat_log_triage.core.limiter import REJECTION_MESSAGE, IntakeLimiter, get_intake_limiter


def test_rejects_run_beyond_capacity() -> None:
    limiter = IntakeLimiter(2)

    assert limiter.try_acquire()
    assert limiter.try_acquire()
    assert not limiter.try_acquire()

    limiter.release()
    assert limiter.try_acquire()
    assert limiter.in_use == 2


def test_admit_raises_with_fixed_message() -> None:
    limiter = IntakeLimiter(1)

    with limiter.admit():
        with pytest.raises(IntakeRejected) as excinfo:
            with limiter.admit():
                pass

    assert str(excinfo.value) == REJECTION_MESSAGE
    assert limiter.in_use == 0


def test_admit_releases_after_exception() -> None:
    limiter = IntakeLimiter(1)

    with pytest.raises(ValueError):
        with limiter.admit():
            raise ValueError("boom")

    assert limiter.in_use == 0
    with limiter.admit():
        assert limiter.in_use == 1


def test_release_without_acquire_is_an_error() -> None:
    with pytest.raises(RuntimeError):
        IntakeLimiter(1).release()


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        IntakeLimiter(0)


def test_global_limiter_is_created_once(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(limiter_module, "_limiter", None)

    first = get_intake_limiter(3)
    second = get_intake_limiter(7)

    assert first is second
    assert first.capacity == 3
