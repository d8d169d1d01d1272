"""Simple in-memory store for analysis runs.

Finished runs stay in memory for `retention_seconds` so late readers still
see their progress history; after that they are dropped and reads fall
back to the database.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence
from uuid import uuid4

from models.annotation import UserAnnotation
from models.session_models import AnalysisSession
from services.analysis.cancellation import CancellationHandle
from services.analysis.errors import SessionNotFoundError
from services.analysis.progress import ProgressReporter

LOGGER = logging.getLogger(__name__)


@dataclass
class AnalysisRun:
	"""A session together with its progress channel and cancellation handle."""

	session: AnalysisSession
	progress: ProgressReporter = field(default_factory=ProgressReporter)
	cancellation: Optional[CancellationHandle] = None

	def __post_init__(self) -> None:
		if self.cancellation is None:
			self.cancellation = CancellationHandle(name=self.session.session_id)


class SessionStore:
	"""Manage the analysis sessions of this process."""

	def __init__(self, retention_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
		self._runs: Dict[str, AnalysisRun] = {}
		self._finished_at: Dict[str, float] = {}
		self.retention_seconds = retention_seconds
		self._clock = clock

	def __len__(self) -> int:
		return len(self._runs)

	def create(
		self,
		image_urls: Sequence[str],
		prompt: str = "",
		user_annotations: Sequence[UserAnnotation] = (),
	) -> AnalysisRun:
		"""Register a new pending session and return its run."""
		self.prune()
		session = AnalysisSession(
			session_id=uuid4().hex,
			image_urls=list(image_urls),
			prompt=prompt or "",
			user_annotations=list(user_annotations),
		)
		run = AnalysisRun(session=session)
		self._runs[session.session_id] = run
		return run

	def get(self, session_id: str) -> AnalysisRun:
		"""Return a run or raise SessionNotFoundError if missing or expired."""
		self.prune()
		run = self._runs.get(session_id)
		if run is None:
			raise SessionNotFoundError(f"Session {session_id} not found")
		return run

	def adopt(self, session: AnalysisSession) -> AnalysisRun:
		"""Hold a session loaded from storage so it can be run or watched."""
		self.prune()
		run = self._runs.get(session.session_id)
		if run is None:
			run = AnalysisRun(session=session)
			self._runs[session.session_id] = run
		return run

	def cancel(self, session_id: str) -> AnalysisRun:
		"""Abort whatever the session is currently running."""
		run = self.get(session_id)
		run.cancellation.abort()
		return run

	def finish(self, session_id: str) -> None:
		"""Start the retention clock for a run that reached a terminal status."""
		if session_id in self._runs:
			self._finished_at.setdefault(session_id, self._clock())
		self.prune()

	def discard(self, session_id: str) -> Optional[AnalysisRun]:
		"""Drop a run immediately, returning it if it was held."""
		self._finished_at.pop(session_id, None)
		run = self._runs.pop(session_id, None)
		if run is not None:
			run.cancellation.release()
		return run

	def prune(self) -> int:
		"""Drop finished runs older than the retention window; return how many went."""
		cutoff = self._clock() - self.retention_seconds
		expired = [session_id for session_id, finished in self._finished_at.items() if finished <= cutoff]
		for session_id in expired:
			self.discard(session_id)
		if expired:
			LOGGER.debug("Evicted %d finished run(s) from memory", len(expired))
		return len(expired)
