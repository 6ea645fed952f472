"""Cancellation tokens checked at every remote call boundary."""

from __future__ import annotations

import threading
import time

from gitrows.errors import OperationCancelledError


class CancelToken:
    """A caller-held flag that aborts an operation before its next remote step.

    Remote steps (ls-remote, clone, fetch, push) check the token before they
    start; a step already in flight runs to completion. An optional
    ``timeout`` (seconds) turns the token into a deadline.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, step: str) -> None:
        if self.cancelled:
            raise OperationCancelledError(
                f"cancelled before {step}", step=step
            )


def check(token: CancelToken | None, step: str) -> None:
    """Raise if *token* is set; a missing token never cancels."""
    if token is not None:
        token.raise_if_cancelled(step)
