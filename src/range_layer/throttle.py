"""Rate-limited log emission.

A :class:`Throttle` remembers when each key last fired and lets a message
through at most once per *period* seconds.  Keys are free-form strings; the
call sites in this package use ``"<module>.<condition>"``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable


class Throttle:
    """Emit-at-most-once-per-interval gate keyed by message site.

    Parameters
    ----------
    clock:
        Monotonic time source in seconds.  Injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last: dict[str, float] = {}
        self._lock = threading.Lock()

    def ready(self, key: str, period: float) -> bool:
        """Return True (and arm the key) if *key* has not fired within *period*."""
        now = self._clock()
        with self._lock:
            last = self._last.get(key)
            if last is not None and now - last < period:
                return False
            self._last[key] = now
            return True

    def log(
        self,
        logger: logging.Logger,
        level: int,
        key: str,
        period: float,
        msg: str,
    ) -> bool:
        """Log *msg* on *logger* if the *key* gate is open. Returns True if emitted."""
        if not self.ready(key, period):
            return False
        logger.log(level, msg)
        return True

    def reset(self) -> None:
        with self._lock:
            self._last.clear()


_default = Throttle()


def log_throttled(logger: logging.Logger, level: int, key: str, period: float, msg: str) -> bool:
    """Module-level shortcut using a process-wide :class:`Throttle`."""
    return _default.log(logger, level, key, period, msg)
