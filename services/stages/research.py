"""Competitive research insights grounded in a finished critique."""

import logging
from typing import List

from openai import AsyncOpenAI

from models.stage_io import PrimaryAnalysisResponse, ResearchInsight
from services.stages.media_inputs import build_inputs
from services.stages.prompts import research_system_prompt, research_user_prompt
from services.stages.response_parser import parse_function_call
from services.stages.tool_schemas import RESEARCH_DEFINITION, RESEARCH_FUNCTION

LOGGER = logging.getLogger(__name__)

MAX_FINDINGS = 20


def summarize_findings(results: PrimaryAnalysisResponse) -> str:
    lines = [
        f"- [{annotation.severity}/{annotation.category}] image {annotation.effective_image_index}: "
        f"{annotation.feedback}"
        for annotation in results.annotations[:MAX_FINDINGS]
    ]
    return "\n".join(lines) if lines else "No findings recorded."


class OpenAIResearch:
    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model

    async def research(
        self,
        session_id: str,
        analysis_context: str,
        analysis_results: PrimaryAnalysisResponse,
    ) -> List[ResearchInsight]:
        response = await self.client.responses.create(
            model=self.model,
            input=build_inputs(
                research_system_prompt(),
                research_user_prompt(analysis_context, summarize_findings(analysis_results)),
            ),
            tools=[RESEARCH_DEFINITION],
            tool_choice={"type": "function", "name": RESEARCH_FUNCTION},
        )
        args = parse_function_call(response, tool_name=RESEARCH_FUNCTION)
        insights = [
            ResearchInsight(
                title=str(item.get("title") or "Untitled insight"),
                summary=str(item.get("summary") or ""),
                source=item.get("source") or None,
            )
            for item in args.get("insights") or []
            if isinstance(item, dict)
        ]
        LOGGER.info("Research for session %s produced %d insights", session_id, len(insights))
        return insights
