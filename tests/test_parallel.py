"""
Tests for the worker pool.
"""

import threading

import pytest

from cosmogony_builder.exceptions import GeometryError, InvariantViolationError
from cosmogony_builder.utils.parallel import WorkerPool


def square_or_fail(value):
    if value == 3:
        raise GeometryError("bad item", zone_id=value)
    return value * value


@pytest.mark.parametrize("workers", [1, 4])
def test_results_and_failures_collected(workers):
    pool = WorkerPool(workers=workers, show_progress=False)

    outcome = pool.run_pass("square", range(6), square_or_fail)

    assert outcome.results == {0: 0, 1: 1, 2: 4, 4: 16, 5: 25}
    assert list(outcome.failures) == [3]
    assert isinstance(outcome.failures[3], GeometryError)
    assert outcome.processed == 6


def test_custom_key():
    pool = WorkerPool(workers=2, show_progress=False)

    outcome = pool.run_pass("keyed", ["a", "bb", "ccc"], len, key=lambda item: item.upper())

    assert outcome.results == {"A": 1, "BB": 2, "CCC": 3}


def test_invariant_violation_reraised_after_pass():
    seen = []
    lock = threading.Lock()

    def work(value):
        with lock:
            seen.append(value)
        if value == 0:
            raise InvariantViolationError("broken", zone_ids=[value])
        return value

    pool = WorkerPool(workers=3, show_progress=False)

    with pytest.raises(InvariantViolationError):
        pool.run_pass("fatal", range(5), work)

    # The remaining items still ran to completion
    assert sorted(seen) == [0, 1, 2, 3, 4]


def test_empty_pass():
    outcome = WorkerPool(workers=2, show_progress=False).run_pass("empty", [], square_or_fail)

    assert outcome.results == {}
    assert outcome.processed == 0


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        WorkerPool(workers=0)
