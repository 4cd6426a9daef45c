from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .highlight import AnnotatedRendering

__all__ = [
    "TRANSIENT_WINDOW",
    "JUMP_RETRY_DELAY",
    "TransientHighlight",
    "LocateResult",
    "OccurrenceLocator",
    "JumpRequest",
    "thread_scheduler",
]

logger = logging.getLogger(__name__)

TRANSIENT_WINDOW = 2.0
JUMP_RETRY_DELAY = 0.5

Clock = Callable[[], float]
Scheduler = Callable[[float, Callable[[], None]], object]


@dataclass(frozen=True)
class TransientHighlight:
    segment_index: int
    armed_at: float
    expires_at: float

    def active(self, now: float) -> bool:
        return self.armed_at <= now < self.expires_at


@dataclass(frozen=True)
class LocateResult:
    found: bool
    segment_index: int | None = None
    transient: TransientHighlight | None = None
    scroll_block: str = "center"
    scroll_behavior: str = "smooth"


NOT_FOUND = LocateResult(found=False)


class OccurrenceLocator:
    """
    Finds the first rendered occurrence of a term and arms a short-lived
    emphasis on it.

    Only one transient highlight exists at a time. Once ``window`` seconds
    have passed it is gone, whether or not anything else happened in between.
    """

    def __init__(self, *, window: float = TRANSIENT_WINDOW, clock: Clock = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._transient: TransientHighlight | None = None

    def locate(self, rendering: AnnotatedRendering | None, term: str | None) -> LocateResult:
        if rendering is None or not term:
            return NOT_FOUND
        needle = term.strip().lower()
        if not needle:
            return NOT_FOUND
        for index, segment in rendering.highlights():
            if segment.text.lower() != needle:
                continue
            now = self._clock()
            transient = TransientHighlight(index, now, now + self.window)
            with self._lock:
                self._transient = transient
            return LocateResult(found=True, segment_index=index, transient=transient)
        return NOT_FOUND

    def active_transient(self) -> TransientHighlight | None:
        now = self._clock()
        with self._lock:
            transient = self._transient
            if transient is not None and not transient.active(now):
                self._transient = None
                transient = None
        return transient

    def clear(self) -> None:
        with self._lock:
            self._transient = None


def thread_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class JumpRequest:
    """
    One "jump to this term" navigation.

    The first attempt runs immediately. If the term is not rendered yet
    (usually because vocabulary is still loading) a single re-attempt is
    scheduled ``retry_delay`` seconds later; after that the request is done.
    """

    def __init__(
        self,
        locator: OccurrenceLocator,
        term: str,
        rendering_source: Callable[[], AnnotatedRendering | None],
        *,
        on_result: Callable[[LocateResult], None] | None = None,
        scheduler: Scheduler = thread_scheduler,
        retry_delay: float = JUMP_RETRY_DELAY,
    ) -> None:
        self.locator = locator
        self.term = term
        self._rendering_source = rendering_source
        self._on_result = on_result
        self._scheduler = scheduler
        self.retry_delay = retry_delay
        self.attempts = 0
        self.result: LocateResult | None = None
        self._retry_scheduled = False

    def start(self) -> LocateResult:
        result = self._attempt()
        if not result.found and not self._retry_scheduled:
            self._retry_scheduled = True
            logger.debug("Jump target %r not rendered yet; retrying once", self.term)
            self._scheduler(self.retry_delay, self._retry)
        return result

    def _retry(self) -> None:
        result = self._attempt()
        if not result.found:
            logger.debug("Jump target %r still missing after retry", self.term)

    def _attempt(self) -> LocateResult:
        self.attempts += 1
        result = self.locator.locate(self._rendering_source(), self.term)
        self.result = result
        if self._on_result is not None:
            self._on_result(result)
        return result

    @property
    def finished(self) -> bool:
        return (self.result is not None and self.result.found) or self.attempts >= 2
