"""Primary design critique via OpenAI's Responses API."""

import logging
import time
from typing import Any, List, Optional

from openai import AsyncOpenAI

from models.annotation import Annotation
from models.stage_io import BatchRequest, PrimaryAnalysisResponse
from services.analysis.errors import StageResponseError
from services.stages.media_inputs import build_inputs
from services.stages.prompts import KNOWLEDGE_SOURCES, critique_system_prompt, knowledge_guidance
from services.stages.response_parser import extract_usage, parse_function_call
from services.stages.tool_schemas import ANNOTATIONS_DEFINITION, ANNOTATIONS_FUNCTION

LOGGER = logging.getLogger(__name__)


def annotations_from_arguments(arguments: dict) -> List[Annotation]:
    """Normalise the `annotations` argument of a tool call."""
    raw = arguments.get("annotations")
    if not isinstance(raw, list):
        raise StageResponseError("Tool call did not contain an annotations array.")
    try:
        annotations = [Annotation.from_payload(item) for item in raw if isinstance(item, dict)]
    except ValueError as exc:
        raise StageResponseError(f"Malformed annotation in tool call: {exc}") from exc
    if len(annotations) != len(raw):
        LOGGER.warning("Dropped %d non-object annotation entries", len(raw) - len(annotations))
    return annotations


class OpenAIPrimaryAnalysis:
    """Send every session image and the analysis prompt in a single request."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.system_prompt = critique_system_prompt()

    async def analyze(self, request: BatchRequest) -> PrimaryAnalysisResponse:
        start_time = time.time()
        prompt = request.analysis_prompt
        citations: List[dict] = []
        if request.rag_enhanced:
            prompt = f"{prompt}\n{knowledge_guidance()}"
            citations = [
                {"title": source, "summary": "Consulted for the primary critique", "source": None}
                for source in KNOWLEDGE_SOURCES[: request.research_source_count]
            ]
        inputs = build_inputs(self.system_prompt, prompt, image_urls=request.image_urls)
        response = await self._create_response(inputs)
        annotations = annotations_from_arguments(parse_function_call(response, tool_name=ANNOTATIONS_FUNCTION))
        LOGGER.info(
            "Primary analysis for %s (attempt %d, %s) returned %d annotations in %.3fs",
            request.analysis_id,
            request.attempt + 1,
            self.model,
            len(annotations),
            time.time() - start_time,
        )
        return PrimaryAnalysisResponse(
            success=True,
            annotations=annotations,
            research_citations=citations,
            research_enhanced=request.rag_enhanced,
            knowledge_sources_used=len(citations),
            model=self.model,
            usage=extract_usage(response),
        )

    async def _create_response(self, inputs: List[dict]) -> Any:
        try:
            return await self.client.responses.create(
                model=self.model,
                input=inputs,
                tools=[ANNOTATIONS_DEFINITION],
                tool_choice={"type": "function", "name": ANNOTATIONS_FUNCTION},
            )
        except Exception as exc:
            LOGGER.error("Error during OpenAI Responses API call (%s): %s", self.model, exc)
            raise


def build_primary_chain_models(primary_model: str, fallback_models: Optional[List[str]]) -> List[str]:
    """Return the primary model followed by distinct fallbacks, in order."""
    models = [primary_model]
    for model in fallback_models or []:
        if model and model not in models:
            models.append(model)
    return models
