"""Session domain models for design analysis runs."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from models.annotation import Annotation, UserAnnotation


class SessionStatus(str, Enum):
	"""Lifecycle of an analysis session."""

	PENDING = "pending"
	PROCESSING = "processing"
	COMPLETED = "completed"
	ERROR = "error"

	@property
	def terminal(self) -> bool:
		return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


class StageName(str, Enum):
	VISION = "vision"
	PRIMARY = "primary"
	MULTI_MODEL = "multi_model"
	RESEARCH = "research"


@dataclass
class StageResult:
	"""Outcome of one stage invocation, success or not."""

	stage: StageName
	success: bool
	payload: Any = None
	error: Optional[str] = None
	error_kind: Optional[str] = None
	duration_ms: int = 0

	def to_payload(self) -> Dict[str, Any]:
		return {
			"stage": self.stage.value,
			"success": self.success,
			"payload": self.payload,
			"error": self.error,
			"error_kind": self.error_kind,
			"duration_ms": self.duration_ms,
		}


@dataclass
class AnalysisOptions:
	"""Per-run switches for the optional stages."""

	use_multi_model: bool = False
	models: List[str] = field(default_factory=list)
	analysis_type: str = "strategic"
	enable_research: bool = False
	design_type: str = "web"
	rag_enhanced: bool = False


@dataclass
class AnalysisSession:
	"""One user-initiated analysis over an ordered list of images.

	Only the orchestrator mutates a session while it runs; everything else
	reads `snapshot()` copies.
	"""

	session_id: str
	image_urls: List[str]
	prompt: str = ""
	user_annotations: List[UserAnnotation] = field(default_factory=list)
	status: SessionStatus = SessionStatus.PENDING
	current_stage: Optional[StageName] = None
	stage_results: List[StageResult] = field(default_factory=list)
	annotations: List[Annotation] = field(default_factory=list)
	analysis_prompt: Optional[str] = None
	error: Optional[str] = None
	error_kind: Optional[str] = None
	integrity_issues: List[str] = field(default_factory=list)
	created_at: float = field(default_factory=lambda: time.time())
	updated_at: float = field(default_factory=lambda: time.time())

	@property
	def image_count(self) -> int:
		return len(self.image_urls)

	def envelope(self) -> Dict[str, Any]:
		"""Return each stage's payload keyed by stage name, in invocation order."""
		return {result.stage.value: result.payload for result in self.stage_results}

	def stage_result(self, stage: StageName) -> Optional[StageResult]:
		for result in self.stage_results:
			if result.stage == stage:
				return result
		return None

	def touch(self) -> None:
		self.updated_at = time.time()

	def snapshot(self) -> Dict[str, Any]:
		"""Return a detached, JSON-friendly copy of the session state."""
		return copy.deepcopy(
			{
				"session_id": self.session_id,
				"image_urls": list(self.image_urls),
				"prompt": self.prompt,
				"status": self.status.value,
				"current_stage": self.current_stage.value if self.current_stage else None,
				"stage_results": [result.to_payload() for result in self.stage_results],
				"annotations": [annotation.to_payload() for annotation in self.annotations],
				"user_annotations": [annotation.to_payload() for annotation in self.user_annotations],
				"error": self.error,
				"error_kind": self.error_kind,
				"integrity_issues": list(self.integrity_issues),
				"created_at": self.created_at,
				"updated_at": self.updated_at,
			}
		)


@dataclass
class AnalysisOutcome:
	"""Status surface returned to callers of the orchestrator."""

	success: bool
	session_id: str
	status: SessionStatus
	annotations: List[Annotation] = field(default_factory=list)
	research_citations: List[Dict[str, Any]] = field(default_factory=list)
	knowledge_sources_used: int = 0
	research_enhanced: bool = False
	cancelled: bool = False
	error: Optional[str] = None
	error_kind: Optional[str] = None
	message: Optional[str] = None
	integrity_issues: List[str] = field(default_factory=list)

	def to_payload(self) -> Dict[str, Any]:
		return {
			"success": self.success,
			"sessionId": self.session_id,
			"status": self.status.value,
			"annotations": [annotation.to_payload() for annotation in self.annotations],
			"researchCitations": self.research_citations,
			"knowledgeSourcesUsed": self.knowledge_sources_used,
			"researchEnhanced": self.research_enhanced,
			"cancelled": self.cancelled,
			"error": self.error,
			"errorKind": self.error_kind,
			"message": self.message,
			"integrityIssues": self.integrity_issues,
		}
