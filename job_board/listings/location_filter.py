"""Client-side filter state: a debounced location filter over loaded postings.

The HTTP listing route filters in one pass with ``filter_by_location``; this
class is for callers that hold a postings list and feed it keystrokes, such as
an interactive front end.
"""

import logging
import threading
from typing import Callable, Optional

from .service import filter_by_location

logger = logging.getLogger("job_board.listings")


class LocationFilter:
    """Applies the location text only after typing pauses for ``delay_ms``.

    Every ``set_filter`` cancels the pending timer and starts a new one, so a
    burst of keystrokes results in a single filter pass on the last text.
    """

    def __init__(
        self,
        postings: Optional[list[dict]] = None,
        delay_ms: int = 300,
        on_change: Optional[Callable[[list[dict]], None]] = None,
    ):
        self.delay = delay_ms / 1000.0
        self.on_change = on_change
        self._postings = list(postings or [])
        self._text = ""
        self._visible = list(self._postings)
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, postings=None, on_change=None) -> "LocationFilter":
        """Build from a ``ListingsConfig``."""
        return cls(postings, delay_ms=config.filter_debounce_ms, on_change=on_change)

    @property
    def text(self) -> str:
        """The filter text currently applied to ``visible``."""
        return self._text

    @property
    def visible(self) -> list[dict]:
        with self._lock:
            return list(self._visible)

    def set_postings(self, postings: list[dict]) -> None:
        with self._lock:
            self._postings = list(postings)
            self._visible = filter_by_location(self._postings, self._text)
            visible = list(self._visible)
        self._notify(visible)

    def set_filter(self, text: str) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            timer = threading.Timer(self.delay, self._apply, args=(text, self._generation))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def flush(self) -> None:
        """Apply a pending filter now instead of waiting for the timer."""
        with self._lock:
            timer = self._timer
            if timer is None:
                return
            self._cancel_locked()
            text, generation = timer.args
        self._apply(text, generation)

    def clear(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._text = ""
            self._visible = list(self._postings)
            visible = list(self._visible)
        self._notify(visible)

    def close(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _apply(self, text: str, generation: int) -> None:
        with self._lock:
            # A timer that fired just as it was replaced must not win
            if generation != self._generation:
                return
            self._timer = None
            self._text = text
            self._visible = filter_by_location(self._postings, text)
            visible = list(self._visible)
        logger.debug("Location filter %r matched %d postings", text, len(visible))
        self._notify(visible)

    def _notify(self, visible: list[dict]) -> None:
        if self.on_change is not None:
            self.on_change(visible)
