"""
Run lifecycle primitives: cooperative cancellation and signal handling.

This module provides:
- CancellationToken: Cancellation flag with an optional run deadline
- SignalHandler: Turns SIGINT/SIGTERM into a token cancellation

Signal handlers never touch the database session. They only cancel the
token; the controlling task notices the cancellation at its next
checkpoint and performs the rollback itself.

Example:
    >>> token = CancellationToken(timeout=24 * 3600)
    >>> handler = SignalHandler(token)
    >>> handler.register()
    >>> reason = await token.wait()  # returns on Ctrl+C or deadline
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cancellation flag shared between the signal handler and the run.

    The token is cancelled either explicitly (``cancel()``, usually from a
    signal handler) or implicitly once the optional deadline passes. The
    first cause wins and is kept as ``reason``.

    Args:
        timeout: Seconds from construction until the run deadline expires
            (None = no deadline)
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._expired = False
        self._timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called or the deadline has passed."""
        self._check_deadline()
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        """True if the cancellation was caused by the run deadline."""
        self._check_deadline()
        return self._expired

    @property
    def reason(self) -> str | None:
        return self._reason

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Cancel the token.

        Returns:
            True if this call cancelled the token, False if it was already cancelled
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> str:
        """
        Wait until the token is cancelled or the deadline passes.

        Returns:
            The cancellation reason
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=self.remaining())
        except TimeoutError:
            self._check_deadline()
        return self._reason or "cancelled"

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for ``seconds`` unless the token is cancelled first.

        Returns:
            True if the token was cancelled (during or before the sleep)
        """
        if self.cancelled:
            return True
        remaining = self.remaining()
        delay = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            pass
        return self.cancelled

    def _check_deadline(self) -> None:
        if self._event.is_set() or self._deadline is None:
            return
        if time.monotonic() >= self._deadline:
            self._expired = True
            self.cancel(f"run deadline of {self._timeout:g}s exceeded")


class SignalHandler:
    """
    Cancels a token when SIGINT or SIGTERM is received.

    A second signal while the token is already cancelled is logged and
    otherwise ignored: the release already in progress is not interrupted.

    Args:
        token: Token to cancel
        signals: Signals to listen for
    """

    def __init__(
        self,
        token: CancellationToken,
        signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        self._token = token
        self._signals = signals
        self._registered: list[signal.Signals] = []

    @property
    def registered(self) -> bool:
        return bool(self._registered)

    def register(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Register the handlers on the event loop.

        Args:
            loop: Event loop to register handlers on. Defaults to the
                  running event loop.

        Note:
            On Windows ``add_signal_handler`` is not available; the default
            KeyboardInterrupt behaviour applies there instead.
        """
        if self._registered:
            logger.warning("Signal handlers already registered")
            return

        loop = loop or asyncio.get_running_loop()

        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self.handle, sig)
                self._registered.append(sig)
                logger.debug("Registered signal handler", extra={"signal": sig.name})
            except NotImplementedError:
                logger.warning(
                    "Signal handling not fully supported on this platform",
                    extra={"signal": sig.name},
                )

    def unregister(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Remove the handlers registered by ``register()``."""
        if not self._registered:
            return

        loop = loop or asyncio.get_running_loop()

        for sig in self._registered:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, ValueError):
                pass
        self._registered.clear()

    def handle(self, sig: signal.Signals) -> None:
        """Cancel the token in response to ``sig``."""
        if not self._token.cancel(f"received {sig.name}"):
            logger.warning(
                "Received %s while already releasing locks, ignoring",
                sig.name,
                extra={"signal": sig.name},
            )
            return
        logger.info("Received %s, releasing table locks", sig.name, extra={"signal": sig.name})


__all__ = [
    "CancellationToken",
    "SignalHandler",
]
