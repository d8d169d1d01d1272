"""Request/response shapes exchanged with the stage invokers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from models.annotation import Annotation


@dataclass(frozen=True)
class BatchRequest:
    """One outbound primary analysis invocation.

    Frozen so that a retry never mutates the request it is retrying; each
    attempt gets its own copy via `for_attempt`.
    """

    image_urls: tuple
    analysis_id: str
    analysis_prompt: str
    design_type: str = "web"
    is_comparative: bool = False
    rag_enhanced: bool = False
    research_source_count: int = 0
    timeout_ms: int = 120_000
    attempt: int = 0

    def for_attempt(self, attempt: int) -> "BatchRequest":
        return replace(self, attempt=attempt)


@dataclass
class PrimaryAnalysisResponse:
    success: bool
    annotations: List[Annotation] = field(default_factory=list)
    error: Optional[str] = None
    research_citations: List[Dict[str, Any]] = field(default_factory=list)
    knowledge_sources_used: int = 0
    research_enhanced: bool = False
    model: Optional[str] = None
    usage: Dict[str, Optional[int]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "annotations": [annotation.to_payload() for annotation in self.annotations],
            "error": self.error,
            "researchCitations": self.research_citations,
            "knowledgeSourcesUsed": self.knowledge_sources_used,
            "researchEnhanced": self.research_enhanced,
            "model": self.model,
            "usage": self.usage,
        }


@dataclass
class VisionLabels:
    """Vision stage output for a single image."""

    image_index: int
    labels: List[str] = field(default_factory=list)
    confidence: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {"imageIndex": self.image_index, "labels": list(self.labels), "confidence": self.confidence}


@dataclass
class ResearchInsight:
    title: str
    summary: str
    source: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"title": self.title, "summary": self.summary, "source": self.source}
