# coordinator/debounce.py
import asyncio
from typing import Any, Callable, Optional

from utils.config import SEARCH_DEBOUNCE_SECONDS, SEARCH_MIN_CHARS
from utils.logs import get_logger

logger = get_logger("debounce")


def _loop_call_later(delay, callback):
    return asyncio.get_running_loop().call_later(delay, callback)


class SearchDebouncer:
    """
    Hold back a fast-changing text input until typing pauses.

    Every on_input() call records the raw text immediately (so it can be shown
    as typed) and restarts a single quiet-period timer. When the timer fires
    the trimmed text is forwarded if it is at least ``min_length`` characters
    long; shorter text calls ``clear`` instead so stale results disappear
    without a request. A burst of inputs within the quiet period therefore
    produces exactly one forward, carrying the last value.

    Args:
        forward (Callable[[str], Any]): Receives the trimmed text, usually
            a RequestCoordinator-backed search
        clear (Callable[[], Any]): Called when the settled text is too short
        quiet_period (float): Seconds of silence before forwarding.
            Defaults to SEARCH_DEBOUNCE_SECONDS (0.3)
        min_length (int): Minimum trimmed length to forward. Defaults to
            SEARCH_MIN_CHARS (2)
        call_later (Callable): ``call_later(delay, callback) -> handle`` with
            a ``cancel()`` method. Defaults to the running asyncio loop.
    """

    def __init__(
        self,
        forward: Callable[[str], Any],
        clear: Callable[[], Any],
        quiet_period: float = SEARCH_DEBOUNCE_SECONDS,
        min_length: int = SEARCH_MIN_CHARS,
        call_later: Optional[Callable] = None,
    ):
        self.forward = forward
        self.clear = clear
        self.quiet_period = quiet_period
        self.min_length = min_length
        self._call_later = call_later or _loop_call_later
        self._timer = None
        self.raw_text = ""
        self.last_forwarded: Optional[str] = None

    @property
    def pending(self):
        return self._timer is not None

    def on_input(self, raw_text: str):
        self.raw_text = raw_text or ""
        self.cancel()
        self._timer = self._call_later(self.quiet_period, self._fire)

    def flush(self):
        """Fire right away, e.g. when the user presses Enter."""
        self.cancel()
        self._fire()

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self):
        self._timer = None
        text = self.raw_text.strip()
        if len(text) >= self.min_length:
            logger.debug("forwarding %r", text)
            self.last_forwarded = text
            self.forward(text)
        else:
            logger.debug("input %r below %d characters, clearing", text, self.min_length)
            self.last_forwarded = None
            self.clear()
