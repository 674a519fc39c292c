"""Debounced draft saving for planning sessions."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

SaveFn = Callable[[dict[str, Any]], Awaitable[None]]


def default_delay() -> float:
    return float(os.getenv("AUTOSAVE_DEBOUNCE_SECONDS", "1.5"))


class DebouncedSaver:
    """Saves the latest scheduled state after a quiet period.

    Each session owns one saver. Scheduling again before the delay elapses
    restarts the timer, so a burst of edits produces a single save of the
    last state.
    """

    def __init__(self, save: SaveFn, delay: float | None = None):
        self._save = save
        self.delay = default_delay() if delay is None else delay
        self._pending: dict[str, Any] | None = None
        self._timer: asyncio.Task | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, state: dict[str, Any]) -> None:
        """Replace the pending state and restart the timer."""
        self._pending = state
        self._cancel_timer()
        self._timer = asyncio.create_task(self._run())

    async def flush(self) -> bool:
        """Save the pending state now.

        Returns:
            True if there was something to save.
        """
        self._cancel_timer()
        return await self._save_pending()

    def cancel(self) -> None:
        """Drop the pending state without saving."""
        self._cancel_timer()
        self._pending = None

    def _cancel_timer(self) -> None:
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _save_pending(self) -> bool:
        state = self._pending
        if state is None:
            return False
        self._pending = None
        try:
            await self._save(state)
        except Exception:
            # Keep the state for the next attempt unless a newer one arrived
            if self._pending is None:
                self._pending = state
            raise
        logger.debug("Draft saved")
        return True

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        # The timer no longer owns itself once it fires
        self._timer = None
        try:
            await self._save_pending()
        except Exception as e:
            logger.exception(f"Draft autosave failed: {e}")
