"""Sequence the AI stages of one analysis session.

Stages run strictly in order: vision (optional), primary analysis
(mandatory, retried), multi-model cross-check (optional) and research
(optional). An optional stage that fails is recorded as an unsuccessful
`StageResult` and the run continues; only a primary failure ends the
session in `error`. Labels from a successful vision stage are appended to the
primary prompt. The session is persisted before and after every stage.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from models.annotation import Annotation
from models.session_models import (
    AnalysisOptions,
    AnalysisOutcome,
    AnalysisSession,
    SessionStatus,
    StageName,
    StageResult,
)
from models.stage_io import BatchRequest, PrimaryAnalysisResponse
from services.analysis.cancellation import CancellationHandle
from services.analysis.correlator import describe_out_of_range, distribution, partition_by_image
from services.analysis.errors import (
    AnalysisCancelledError,
    ErrorKind,
    SessionStateError,
    classify_error,
    user_message,
)
from services.analysis.progress import ProgressReporter
from services.analysis.prompt_builder import build_analysis_prompt, with_vision_context
from services.analysis.retry_executor import RetryExecutor, run_with_timeout
from services.stages.base import MultiModelStage, PrimaryAnalysisStage, ResearchStage, VisionStage, require_success
from services.stages.prompts import KNOWLEDGE_SOURCES
from utils.media_validation import validate_analysis_inputs

LOGGER = logging.getLogger(__name__)


class SessionRepository(Protocol):
    async def save_session(self, session: AnalysisSession) -> None:
        ...


@dataclass(frozen=True)
class StageTimeouts:
    vision_ms: int = 30_000
    primary_ms: int = 120_000
    multi_model_ms: int = 90_000
    research_ms: int = 60_000


class AnalysisOrchestrator:
    """Drive one session through the stage pipeline.

    The orchestrator holds no per-session state, so one instance can serve
    any number of concurrent sessions.
    """

    def __init__(
        self,
        primary: PrimaryAnalysisStage,
        *,
        repository: Optional[SessionRepository] = None,
        vision: Optional[VisionStage] = None,
        multi_model: Optional[MultiModelStage] = None,
        research: Optional[ResearchStage] = None,
        retry_executor: Optional[RetryExecutor] = None,
        timeouts: Optional[StageTimeouts] = None,
    ) -> None:
        if primary is None:
            raise ValueError("A primary analysis stage is required.")
        self.primary = primary
        self.repository = repository
        self.vision = vision
        self.multi_model = multi_model
        self.research = research
        self.retry_executor = retry_executor or RetryExecutor()
        self.timeouts = timeouts or StageTimeouts()

    async def run(
        self,
        session: AnalysisSession,
        options: Optional[AnalysisOptions] = None,
        *,
        progress: Optional[ProgressReporter] = None,
        cancellation: Optional[CancellationHandle] = None,
    ) -> AnalysisOutcome:
        """Run every applicable stage and return the caller-facing outcome.

        Raises:
            ValidationError: The inputs are invalid; the session stays pending.
            SessionStateError: The session already ran or is running.
        """
        options = options or AnalysisOptions()
        progress = progress or ProgressReporter()
        cancellation = cancellation or CancellationHandle(name=session.session_id)

        if session.status != SessionStatus.PENDING:
            raise SessionStateError(
                f"Session {session.session_id} is {session.status.value}; start a new session to analyze again"
            )
        validate_analysis_inputs(session.image_urls, session.prompt, session.user_annotations)

        session.analysis_prompt = build_analysis_prompt(
            session.prompt,
            partition_by_image(session.user_annotations, session.image_count),
            session.image_count,
        )
        session.status = SessionStatus.PROCESSING
        await self._persist(session, progress)
        progress.report("Analysis started", 5)
        LOGGER.info(
            "Starting analysis %s: %d image(s), multi_model=%s, research=%s",
            session.session_id,
            session.image_count,
            options.use_multi_model,
            options.enable_research,
        )

        primary_response: Optional[PrimaryAnalysisResponse] = None
        annotations: List[Annotation] = []
        insights: List[Any] = []
        try:
            if self.vision is not None and session.image_urls:
                vision_labels = await self._run_stage(
                    session,
                    StageName.VISION,
                    self._optional_call(
                        lambda: self.vision.detect(session.session_id, session.image_urls),
                        self.timeouts.vision_ms,
                        cancellation,
                        "vision",
                    ),
                    progress=progress,
                    cancellation=cancellation,
                    percentages=(10, 25),
                    to_payload=lambda labels: [label.to_payload() for label in labels],
                )
                if vision_labels:
                    session.analysis_prompt = with_vision_context(session.analysis_prompt, vision_labels)
            else:
                LOGGER.debug("Skipping vision stage for %s", session.session_id)

            request = BatchRequest(
                image_urls=tuple(session.image_urls),
                analysis_id=session.session_id,
                analysis_prompt=session.analysis_prompt,
                design_type=options.design_type,
                is_comparative=session.image_count > 1,
                rag_enhanced=options.rag_enhanced,
                research_source_count=len(KNOWLEDGE_SOURCES) if options.rag_enhanced else 0,
                timeout_ms=self.timeouts.primary_ms,
            )
            primary_response = await self._run_stage(
                session,
                StageName.PRIMARY,
                lambda: self.retry_executor.execute(
                    self._invoke_primary, request, session_handle=cancellation, label="primary"
                ),
                progress=progress,
                cancellation=cancellation,
                percentages=(30, 70),
                to_payload=lambda response: response.to_payload(),
                mandatory=True,
            )
            annotations = list(primary_response.annotations)

            if options.use_multi_model and len(options.models) > 1 and self.multi_model is not None:
                base = primary_response
                merged = await self._run_stage(
                    session,
                    StageName.MULTI_MODEL,
                    self._optional_call(
                        lambda: self.multi_model.cross_check(
                            session.session_id, base, options.models, options.analysis_type
                        ),
                        self.timeouts.multi_model_ms,
                        cancellation,
                        "multi_model",
                    ),
                    progress=progress,
                    cancellation=cancellation,
                    percentages=(75, 85),
                    to_payload=lambda result: [annotation.to_payload() for annotation in result],
                )
                if merged:
                    annotations = list(merged)

            if options.enable_research and self.research is not None:
                base = primary_response
                insights = (
                    await self._run_stage(
                        session,
                        StageName.RESEARCH,
                        self._optional_call(
                            lambda: self.research.research(session.session_id, session.prompt, base),
                            self.timeouts.research_ms,
                            cancellation,
                            "research",
                        ),
                        progress=progress,
                        cancellation=cancellation,
                        percentages=(88, 95),
                        to_payload=lambda result: [insight.to_payload() for insight in result],
                    )
                    or []
                )
        except AnalysisCancelledError:
            if primary_response is None:
                return await self._fail(session, progress, AnalysisCancelledError(), cancelled=True)
            LOGGER.info("Session %s cancelled after primary analysis; keeping completed stages", session.session_id)
            return await self._complete(session, progress, primary_response, annotations, insights, cancelled=True)
        except Exception as exc:
            return await self._fail(session, progress, exc)

        return await self._complete(session, progress, primary_response, annotations, insights)

    async def _invoke_primary(self, request: BatchRequest) -> PrimaryAnalysisResponse:
        return require_success(await self.primary.analyze(request))

    @staticmethod
    def _optional_call(
        factory: Callable[[], Awaitable[Any]],
        timeout_ms: int,
        cancellation: CancellationHandle,
        label: str,
    ) -> Callable[[], Awaitable[Any]]:
        async def call() -> Any:
            handle = CancellationHandle(parent=cancellation, name=label)
            try:
                return await run_with_timeout(factory, timeout_ms, handle, label=label)
            finally:
                handle.release()

        return call

    async def _run_stage(
        self,
        session: AnalysisSession,
        stage: StageName,
        call: Callable[[], Awaitable[Any]],
        *,
        progress: ProgressReporter,
        cancellation: CancellationHandle,
        percentages: tuple,
        to_payload: Callable[[Any], Any],
        mandatory: bool = False,
    ) -> Any:
        cancellation.raise_if_cancelled()
        session.current_stage = stage
        await self._persist(session, progress)
        progress.report(f"Running {stage.value} stage", percentages[0])

        started = time.monotonic()
        value = None
        try:
            value = await call()
        except Exception as exc:
            kind = classify_error(exc)
            session.stage_results.append(
                StageResult(
                    stage=stage,
                    success=False,
                    error=str(exc),
                    error_kind=kind.value,
                    duration_ms=_elapsed_ms(started),
                )
            )
            if mandatory or kind == ErrorKind.CANCELLED:
                raise
            LOGGER.warning("Optional %s stage failed for %s (%s): %s", stage.value, session.session_id, kind.value, exc)
            progress.report(f"{stage.value} stage unavailable, continuing", percentages[1])
        else:
            session.stage_results.append(
                StageResult(stage=stage, success=True, payload=to_payload(value), duration_ms=_elapsed_ms(started))
            )
            LOGGER.info("%s stage completed for %s", stage.value, session.session_id)
            progress.report(f"{stage.value} stage complete", percentages[1])
        finally:
            await self._persist(session, progress)
        return value

    async def _complete(
        self,
        session: AnalysisSession,
        progress: ProgressReporter,
        primary_response: PrimaryAnalysisResponse,
        annotations: List[Annotation],
        insights: List[Any],
        *,
        cancelled: bool = False,
    ) -> AnalysisOutcome:
        session.annotations = annotations
        session.integrity_issues = describe_out_of_range(annotations, session.image_count)
        session.status = SessionStatus.COMPLETED
        session.current_stage = None
        await self._persist(session, progress)
        progress.report("Analysis complete", 100)
        LOGGER.info(
            "Analysis %s completed with %d annotation(s), distribution %s",
            session.session_id,
            len(annotations),
            distribution(annotations),
        )

        citations = list(primary_response.research_citations) + [insight.to_payload() for insight in insights]
        return AnalysisOutcome(
            success=True,
            session_id=session.session_id,
            status=session.status,
            annotations=annotations,
            research_citations=citations,
            knowledge_sources_used=primary_response.knowledge_sources_used + len(insights),
            research_enhanced=primary_response.research_enhanced or bool(insights),
            cancelled=cancelled,
            message=user_message(ErrorKind.CANCELLED) if cancelled else None,
            integrity_issues=list(session.integrity_issues),
        )

    async def _fail(
        self,
        session: AnalysisSession,
        progress: ProgressReporter,
        exc: BaseException,
        *,
        cancelled: bool = False,
    ) -> AnalysisOutcome:
        kind = classify_error(exc)
        if cancelled:
            LOGGER.info("Analysis %s cancelled before primary analysis finished", session.session_id)
        else:
            LOGGER.error("Analysis %s failed (%s): %s", session.session_id, kind.value, exc)
        session.status = SessionStatus.ERROR
        session.current_stage = None
        session.error = str(exc)
        session.error_kind = kind.value
        try:
            await self._persist(session, progress)
        except Exception as persist_exc:
            LOGGER.error("Failed to persist error status for %s: %s", session.session_id, persist_exc)
        progress.report("Analysis cancelled" if cancelled else "Analysis failed", 100)
        return AnalysisOutcome(
            success=False,
            session_id=session.session_id,
            status=session.status,
            cancelled=cancelled,
            error=str(exc),
            error_kind=kind.value,
            message=user_message(kind),
        )

    async def _persist(self, session: AnalysisSession, progress: ProgressReporter) -> None:
        session.touch()
        if self.repository is not None:
            await self.repository.save_session(session)
        progress.publish_session(session.snapshot())


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
