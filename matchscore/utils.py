import hashlib
import math
import threading
import time
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, List, Optional

from matchscore.exceptions import ScoringCancelledError


def clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Round to the nearest integer, .5 going up (Python's round() is banker's rounding)."""
    return int(math.floor(x + 0.5))


def normalize_code(value: Optional[str]) -> str:
    """Upper-case and strip punctuation so '8(a)' and '8A' compare equal."""
    if not value:
        return ""
    return "".join(ch for ch in value.upper() if ch.isalnum())


def stable_digest(*parts: str, length: int = 32) -> str:
    """SHA-256 over the joined parts; stable across processes."""
    content = "|".join(parts)
    return hashlib.sha256(content.encode('utf-8')).hexdigest()[:length]


class CancellationToken:
    """
    Cooperative cancellation signal with an optional deadline.

    Waiters register callbacks instead of polling; callbacks fire once, either
    on cancel() or immediately when registered on an already-cancelled token.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None if there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ScoringCancelledError("Operation cancelled")


def effective_timeout(token: Optional[CancellationToken], timeout: Optional[float]) -> Optional[float]:
    """Smaller of an explicit timeout and the token's remaining time."""
    remaining = token.remaining() if token else None
    if remaining is None:
        return timeout
    if timeout is None:
        return remaining
    return min(remaining, timeout)


def wait_for(future: Future, timeout: Optional[float], token: Optional[CancellationToken] = None):
    """
    Wait for a future's result, failing fast when the token is cancelled.

    Raises concurrent.futures.TimeoutError on timeout and ScoringCancelledError
    on cancellation. The underlying future is left to finish on its own.
    """
    if token is None:
        return future.result(timeout=timeout)

    token.raise_if_cancelled()
    waiter: Future = Future()

    def _copy_outcome(done: Future) -> None:
        if waiter.done():
            return
        try:
            if done.cancelled():
                waiter.set_exception(ScoringCancelledError("Operation cancelled"))
            elif done.exception() is not None:
                waiter.set_exception(done.exception())
            else:
                waiter.set_result(done.result())
        except InvalidStateError:
            # Lost the race against _on_cancel
            pass

    def _on_cancel() -> None:
        if waiter.done():
            return
        try:
            waiter.set_exception(ScoringCancelledError("Operation cancelled"))
        except InvalidStateError:
            pass

    token.add_callback(_on_cancel)
    future.add_done_callback(_copy_outcome)
    try:
        return waiter.result(timeout=effective_timeout(token, timeout))
    except FuturesTimeout:
        # The token deadline ran out before the explicit timeout
        token.raise_if_cancelled()
        raise
    finally:
        token.remove_callback(_on_cancel)
