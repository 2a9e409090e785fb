"""Event-loop debounce timer."""

import asyncio
from typing import Any, Callable, Optional

from autoimmune_console.config.logging_config import get_logger

logger = get_logger("browse.debounce")


class Debouncer:
    """
    Run a callback once a quiet period has passed since the last trigger.

    Each trigger cancels the pending call and schedules a new one, so at most
    one call is ever pending and it always receives the latest arguments.
    Must be triggered from inside a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[..., Any], name: str = "debounce"):
        """
        Args:
            delay: Quiet period in seconds.
            callback: Plain (non-async) callable invoked on expiry.
            name: Label used in log messages.
        """
        self.delay = delay
        self.callback = callback
        self.name = name
        self.fire_count = 0
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args: Any) -> None:
        """Restart the quiet period."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, args: tuple) -> None:
        self._handle = None
        self.fire_count += 1
        logger.debug(f"{self.name} timer fired")
        self.callback(*args)
