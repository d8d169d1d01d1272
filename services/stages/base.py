"""Stage invoker interfaces and the primary-stage fallback chain."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from models.annotation import Annotation
from models.stage_io import BatchRequest, PrimaryAnalysisResponse, ResearchInsight, VisionLabels
from services.analysis.errors import AnalysisCancelledError, ValidationError, stage_error_from_text

LOGGER = logging.getLogger(__name__)


class VisionStage(Protocol):
    async def detect(self, session_id: str, image_urls: Sequence[str]) -> List[VisionLabels]:
        ...


class PrimaryAnalysisStage(Protocol):
    async def analyze(self, request: BatchRequest) -> PrimaryAnalysisResponse:
        ...


class MultiModelStage(Protocol):
    async def cross_check(
        self,
        session_id: str,
        base_analysis: PrimaryAnalysisResponse,
        models: Sequence[str],
        analysis_type: str,
    ) -> List[Annotation]:
        ...


class ResearchStage(Protocol):
    async def research(
        self,
        session_id: str,
        analysis_context: str,
        analysis_results: PrimaryAnalysisResponse,
    ) -> List[ResearchInsight]:
        ...


def require_success(response: PrimaryAnalysisResponse) -> PrimaryAnalysisResponse:
    """Turn a `success: false` reply into the matching typed error."""
    if not response.success:
        raise stage_error_from_text(response.error)
    return response


class PrimaryAnalysisChain:
    """Try an ordered list of primary invokers until one succeeds.

    Validation errors and cancellation stop the chain immediately since
    another provider would fail the same way.
    """

    def __init__(self, invokers: Sequence[PrimaryAnalysisStage]) -> None:
        if not invokers:
            raise ValueError("At least one primary analysis invoker is required.")
        self.invokers = list(invokers)

    async def analyze(self, request: BatchRequest) -> PrimaryAnalysisResponse:
        last_error: Optional[Exception] = None
        for position, invoker in enumerate(self.invokers):
            try:
                return require_success(await invoker.analyze(request))
            except (AnalysisCancelledError, ValidationError):
                raise
            except Exception as exc:
                last_error = exc
                if position + 1 < len(self.invokers):
                    LOGGER.warning(
                        "Primary invoker %s failed (%s); falling back to %s",
                        _describe(invoker),
                        exc,
                        _describe(self.invokers[position + 1]),
                    )
        assert last_error is not None
        raise last_error


def _describe(invoker: object) -> str:
    model = getattr(invoker, "model", None)
    return f"{type(invoker).__name__}({model})" if model else type(invoker).__name__
