"""Progress side-channel for analysis runs."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger(__name__)

ProgressSink = Callable[[str, float], None]
SessionListener = Callable[[Dict[str, Any]], None]


@dataclass
class ProgressEvent:
    step: str
    percentage: float
    at: float = field(default_factory=lambda: time.time())


class ProgressReporter:
    """Fan `(step, percentage)` updates and session snapshots out to subscribers.

    Subscribers are plain callables. A failing subscriber is logged and
    skipped; it never interrupts the run that is reporting.
    """

    def __init__(self) -> None:
        self._sinks: List[ProgressSink] = []
        self._listeners: List[SessionListener] = []
        self.history: List[ProgressEvent] = []

    def subscribe(self, sink: ProgressSink) -> Callable[[], None]:
        self._sinks.append(sink)
        return lambda: self._discard(self._sinks, sink)

    def subscribe_session(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._discard(self._listeners, listener)

    def report(self, step: str, percentage: float) -> None:
        percentage = float(min(max(percentage, 0), 100))
        self.history.append(ProgressEvent(step, percentage))
        LOGGER.info("Progress %.0f%%: %s", percentage, step)
        for sink in list(self._sinks):
            try:
                sink(step, percentage)
            except Exception:
                LOGGER.exception("Progress sink %r failed", sink)

    def publish_session(self, snapshot: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Session listener %r failed", listener)

    @property
    def latest(self) -> ProgressEvent | None:
        return self.history[-1] if self.history else None

    @staticmethod
    def _discard(items: list, item: Any) -> None:
        if item in items:
            items.remove(item)
