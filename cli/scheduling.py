"""
Timers, futures and request tokens for the bid entry controller.

Lookups and saves run on an executor and report back through futures. Every
request is tagged with a per-key token so a slow response cannot overwrite
the result of newer input.
"""
import threading
import logging
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """Runs callbacks after a delay on timer threads."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class RequestGuard:
    """
    Monotonic request tokens per key.

    ``issue`` hands out a new token and thereby supersedes every earlier one
    for the same key; ``is_current`` tells a response handler whether its
    request is still the latest.
    """

    def __init__(self):
        self._tokens: Dict[Any, int] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def issue(self, key: Any) -> int:
        with self._lock:
            self._counter += 1
            self._tokens[key] = self._counter
            return self._counter

    def invalidate(self, key: Any):
        """Supersede any outstanding request for key without starting a new one."""
        self.issue(key)

    def is_current(self, key: Any, token: int) -> bool:
        with self._lock:
            return self._tokens.get(key) == token


def resolved(value: Any = None) -> Future:
    future = Future()
    future.set_result(value)
    return future


def _copy_outcome(source: Future, target: Future):
    if source.cancelled():
        target.cancel()
        return
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())


def chain(future: Future, callback: Callable[[Future], Any]) -> Future:
    """
    Return a future resolved with ``callback(future)`` once ``future`` is done.

    A callback that returns another future is flattened, so steps can be
    sequenced without blocking any thread.
    """
    out = Future()

    def _done(completed: Future):
        try:
            value = callback(completed)
        except Exception as e:
            logger.error(f"Unhandled error in bid entry callback: {e}", exc_info=True)
            out.set_exception(e)
            return
        if isinstance(value, Future):
            value.add_done_callback(lambda inner: _copy_outcome(inner, out))
        else:
            out.set_result(value)

    future.add_done_callback(_done)
    return out


def cancel_timer(timer: Optional[Any]):
    if timer is not None:
        timer.cancel()
