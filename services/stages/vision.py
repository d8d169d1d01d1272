"""Per-image UI element detection used to enrich session results."""

import logging
from typing import List, Sequence

from openai import AsyncOpenAI

from models.stage_io import VisionLabels
from services.stages.media_inputs import build_inputs
from services.stages.prompts import vision_system_prompt
from services.stages.response_parser import parse_function_call
from services.stages.tool_schemas import VISION_DEFINITION, VISION_FUNCTION

LOGGER = logging.getLogger(__name__)


class OpenAIVisionDetector:
    """Label each image's screen type and visible components."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5-mini") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model

    async def detect(self, session_id: str, image_urls: Sequence[str]) -> List[VisionLabels]:
        """Return labels and a confidence per image, in image order."""
        results = []
        for index, image_url in enumerate(image_urls):
            response = await self.client.responses.create(
                model=self.model,
                input=build_inputs(vision_system_prompt(), "Describe this screen.", image_urls=[image_url]),
                tools=[VISION_DEFINITION],
                tool_choice={"type": "function", "name": VISION_FUNCTION},
            )
            args = parse_function_call(response, tool_name=VISION_FUNCTION)
            labels = [str(label) for label in args.get("labels") or []]
            confidence = args.get("confidence")
            confidence = float(confidence) if isinstance(confidence, (int, float)) else 0.0
            results.append(VisionLabels(image_index=index, labels=labels, confidence=min(max(confidence, 0.0), 1.0)))
        LOGGER.info("Vision labels for session %s: %s", session_id, [len(r.labels) for r in results])
        return results
