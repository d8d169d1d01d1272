"""Cross-check a primary critique with additional models and merge the results."""

import json
import logging
from typing import Iterable, List, Sequence, Tuple

from openai import AsyncOpenAI

from models.annotation import Annotation
from models.stage_io import PrimaryAnalysisResponse
from services.stages.media_inputs import build_inputs
from services.stages.primary_analysis import annotations_from_arguments
from services.stages.prompts import cross_check_system_prompt, cross_check_user_prompt
from services.stages.response_parser import parse_function_call
from services.stages.tool_schemas import ANNOTATIONS_DEFINITION, ANNOTATIONS_FUNCTION

LOGGER = logging.getLogger(__name__)

# Annotations closer than this (in percent) on the same image and category are duplicates.
POSITION_BUCKET = 5


def dedupe_key(annotation: Annotation) -> Tuple[int, str, int, int]:
    return (
        annotation.effective_image_index,
        annotation.category,
        round(annotation.x / POSITION_BUCKET),
        round(annotation.y / POSITION_BUCKET),
    )


def merge_annotations(base: Iterable[Annotation], *others: Iterable[Annotation]) -> List[Annotation]:
    """Return all of `base` followed by the annotations from `others` not already covered.

    Base annotations are never collapsed against each other; only reviewer
    annotations are checked against what is already in the merged list.
    """
    merged: List[Annotation] = list(base)
    seen = {dedupe_key(annotation) for annotation in merged}
    for group in others:
        for annotation in group:
            key = dedupe_key(annotation)
            if key in seen:
                continue
            seen.add(key)
            merged.append(annotation)
    return merged


class OpenAIMultiModelReview:
    """Ask each configured model to review the base annotations."""

    def __init__(self, client: AsyncOpenAI) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client

    async def cross_check(
        self,
        session_id: str,
        base_analysis: PrimaryAnalysisResponse,
        models: Sequence[str],
        analysis_type: str,
    ) -> List[Annotation]:
        base_json = json.dumps([annotation.to_payload() for annotation in base_analysis.annotations])
        reviews = []
        for model in models:
            if model == base_analysis.model:
                continue
            response = await self.client.responses.create(
                model=model,
                input=build_inputs(cross_check_system_prompt(analysis_type), cross_check_user_prompt(base_json)),
                tools=[ANNOTATIONS_DEFINITION],
                tool_choice={"type": "function", "name": ANNOTATIONS_FUNCTION},
            )
            reviewed = annotations_from_arguments(parse_function_call(response, tool_name=ANNOTATIONS_FUNCTION))
            LOGGER.info("Model %s reviewed session %s: %d annotations", model, session_id, len(reviewed))
            reviews.append(reviewed)
        return merge_annotations(base_analysis.annotations, *reviews)
