"""
Worker pool used to run independent per-zone passes.

Each pass submits one work item per zone (or per zone pair), waits for all of
them, and only then returns: the return of ``run_pass`` is the barrier that
makes every write of a pass visible to the next one.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Sequence

from tqdm import tqdm

from ..exceptions import InvariantViolationError


@dataclass
class PassResult:
    """Outcome of one pass: successful results and failures, both keyed by item."""

    name: str
    results: Dict[Hashable, Any] = field(default_factory=dict)
    failures: Dict[Hashable, Exception] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return len(self.results) + len(self.failures)


class _ProgressTracker:
    """Thread-safe progress bar for a single pass."""

    def __init__(self, total: int, description: str, enabled: bool):
        self._lock = threading.Lock()
        self._bar: Optional[tqdm] = None
        if enabled and total > 0:
            self._bar = tqdm(total=total, desc=description, unit="item", leave=False)

    def update(self) -> None:
        with self._lock:
            if self._bar is not None:
                self._bar.update(1)

    def close(self) -> None:
        with self._lock:
            if self._bar is not None:
                self._bar.close()
                self._bar = None


class WorkerPool:
    """
    Fixed-size pool running one function over many independent items.

    Items run to completion or fail on their own; a failure never affects
    the other items of the pass. Invariant violations are re-raised once the
    whole pass has finished.
    """

    def __init__(self, workers: int = 1, show_progress: bool = True,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the worker pool.

        Args:
            workers: Number of worker threads; 1 runs items in the calling thread
            show_progress: Whether to display a tqdm progress bar per pass
            logger: Optional logger instance
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1: {workers}")
        self.workers = workers
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger(__name__)

    def run_pass(self, name: str, items: Iterable[Any], fn: Callable[[Any], Any],
                 key: Optional[Callable[[Any], Hashable]] = None) -> PassResult:
        """
        Run ``fn`` over every item and wait for all of them.

        Args:
            name: Pass name used for progress and logging
            items: Work items
            fn: Function applied to each item
            key: Function deriving the result key from an item (identity by default)

        Returns:
            PassResult with per-item results and failures

        Raises:
            InvariantViolationError: If any item hit an internal invariant violation
        """
        items = list(items)
        key = key or (lambda item: item)
        outcome = PassResult(name=name)
        progress = _ProgressTracker(len(items), name, self.show_progress)

        try:
            if self.workers == 1 or len(items) <= 1:
                for item in items:
                    self._run_item(fn, item, key(item), outcome)
                    progress.update()
            else:
                self._run_parallel(fn, items, key, outcome, progress)
        finally:
            progress.close()

        fatal = [error for error in outcome.failures.values()
                 if isinstance(error, InvariantViolationError)]
        if fatal:
            self.logger.critical(f"Pass '{name}' hit {len(fatal)} invariant violation(s)")
            raise fatal[0]

        self.logger.debug(
            f"Pass '{name}' finished: {len(outcome.results)} ok, {len(outcome.failures)} failed"
        )
        return outcome

    def _run_parallel(self, fn: Callable[[Any], Any], items: Sequence[Any],
                      key: Callable[[Any], Hashable], outcome: PassResult,
                      progress: _ProgressTracker) -> None:
        """Submit every item to a thread pool and block until all are done."""
        with ThreadPoolExecutor(max_workers=min(self.workers, len(items)),
                                thread_name_prefix="cosmogony") as executor:
            future_to_key = {}
            for item in items:
                future = executor.submit(fn, item)
                future.add_done_callback(lambda _: progress.update())
                future_to_key[future] = key(item)

            # Barrier: nothing from this pass is read before every item is done
            wait(list(future_to_key.keys()))

        for future, item_key in future_to_key.items():
            error = future.exception()
            if error is None:
                outcome.results[item_key] = future.result()
            elif isinstance(error, Exception):
                outcome.failures[item_key] = error
            else:
                raise error

    @staticmethod
    def _run_item(fn: Callable[[Any], Any], item: Any, item_key: Hashable,
                  outcome: PassResult) -> None:
        try:
            outcome.results[item_key] = fn(item)
        except Exception as e:
            outcome.failures[item_key] = e

