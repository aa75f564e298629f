from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

ProgressCallback = Callable[[float], None]


class ProgressFeedback:
    """
    Thread-safe progress accumulator.

    Each worker thread increments its own local counter; the reported
    progress is the sum over all threads, clamped to ``[0, 1]``.

    Parameters
    ----------
    `callback` : callable, optional
        Receives the accumulated progress fraction after every update.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self._local = threading.local()
        self._counters: list[list[float]] = []
        self._register_lock = threading.Lock()

    def _counter(self) -> list[float]:
        counter = getattr(self._local, "counter", None)
        if counter is None:
            counter = [0.0]
            with self._register_lock:
                self._counters.append(counter)
            self._local.counter = counter
        return counter

    @property
    def value(self) -> float:
        total = sum(c[0] for c in self._counters)
        return min(max(total, 0.0), 1.0)

    def reset(self) -> None:
        """Zero the progress and forget the counters of earlier threads."""
        with self._register_lock:
            self._local = threading.local()
            self._counters = []
        self._report(0.0)

    def update(self, delta: float) -> None:
        counter = self._counter()
        counter[0] += delta
        self._report(self.value)

    def finish(self) -> None:
        self._report(1.0)

    def _report(self, value: float) -> None:
        if self.callback is not None:
            self.callback(value)


@dataclass
class SolverContext:
    """
    Per-call logging and progress context handed to the engines.

    Parameters
    ----------
    `logger` : logging.Logger, optional
        Destination of the engine messages. Defaults to the module logger of
        the engine using the context.
    `log_enabled` : bool
        If False, engine messages are dropped.
    `progress` : ProgressFeedback, optional
        Progress sink used by the batch drivers.
    """

    logger: Optional[logging.Logger] = None
    log_enabled: bool = False
    progress: Optional[ProgressFeedback] = field(default=None, repr=False)

    def log(self, msg: str, *args, level: int = logging.INFO, fallback=None) -> None:
        if not self.log_enabled:
            return
        target = self.logger or fallback or logging.getLogger("NEGF_QTpy")
        target.log(level, msg, *args)

    def debug(self, msg: str, *args, fallback=None) -> None:
        self.log(msg, *args, level=logging.DEBUG, fallback=fallback)

    def warning(self, msg: str, *args, fallback=None) -> None:
        self.log(msg, *args, level=logging.WARNING, fallback=fallback)

    def with_progress(self, callback: Optional[ProgressCallback]) -> "SolverContext":
        """Copy of the context reporting to `callback`."""
        progress = ProgressFeedback(callback) if callback is not None else None
        return SolverContext(self.logger, self.log_enabled, progress)


def default_context() -> SolverContext:
    return SolverContext()
