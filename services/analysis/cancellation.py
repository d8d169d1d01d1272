"""Cancellation handles for sessions and individual stage attempts."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from services.analysis.errors import AnalysisCancelledError

LOGGER = logging.getLogger(__name__)


class AbortReason(str, Enum):
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class CancellationHandle:
    """Abort signal owned by one session or one attempt.

    A handle created with a parent is aborted whenever the parent is, which
    is how a session-level cancel reaches the attempt currently in flight.
    Aborting cancels the bound task, so a late response from that attempt is
    never delivered.
    """

    def __init__(self, parent: Optional["CancellationHandle"] = None, name: str = "") -> None:
        self.name = name
        self.reason: Optional[AbortReason] = None
        self._task: Optional[asyncio.Future] = None
        self._children: List[CancellationHandle] = []
        self._parent = parent
        if parent is not None:
            parent._children.append(self)
            if parent.aborted:
                self.reason = parent.reason

    @property
    def aborted(self) -> bool:
        return self.reason is not None

    @property
    def cancelled(self) -> bool:
        return self.reason == AbortReason.CANCELLED

    def bind(self, task: asyncio.Future) -> None:
        self._task = task
        if self.aborted and not task.done():
            task.cancel()

    def abort(self, reason: AbortReason = AbortReason.CANCELLED) -> None:
        if self.reason is None:
            self.reason = reason
            LOGGER.debug("Cancellation handle %s aborted (%s)", self.name or id(self), reason.value)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        for child in list(self._children):
            child.abort(reason)

    def release(self) -> None:
        """Detach from the parent once the attempt is finished."""
        self._task = None
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AnalysisCancelledError()
