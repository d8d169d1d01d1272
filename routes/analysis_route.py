"""FastAPI routes for design analysis sessions."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.analysis_controller import (
	cancel_analysis,
	create_analysis,
	delete_analysis,
	detect_prompt_context,
	get_analysis,
	get_image_annotations,
	list_analyses,
	run_analysis,
)
from models.annotation import UserAnnotation
from models.session_models import AnalysisOptions

router = APIRouter()


class UserAnnotationPayload(BaseModel):
	x: float
	y: float
	comment: str
	image_index: Optional[int] = Field(default=None, alias="imageIndex")
	id: Optional[str] = None

	model_config = {"populate_by_name": True}

	def to_model(self) -> UserAnnotation:
		if self.id:
			return UserAnnotation(x=self.x, y=self.y, comment=self.comment, image_index=self.image_index, id=self.id)
		return UserAnnotation(x=self.x, y=self.y, comment=self.comment, image_index=self.image_index)


class CreatePayload(BaseModel):
	image_urls: List[str]
	prompt: Optional[str] = None
	user_annotations: List[UserAnnotationPayload] = []


class RunPayload(BaseModel):
	use_multi_model: bool = False
	models: List[str] = []
	analysis_type: str = "strategic"
	enable_research: bool = False
	design_type: str = "web"
	rag_enhanced: bool = False


@router.post("/analyses")
async def create_analysis_route(request: Request, payload: CreatePayload):
	try:
		return await create_analysis(
			request,
			payload.image_urls,
			payload.prompt,
			[annotation.to_model() for annotation in payload.user_annotations],
		)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/analyses")
async def list_analyses_route(request: Request, limit: int = 100, offset: int = 0):
	"""List stored sessions, newest first."""
	try:
		return await list_analyses(request, limit, offset)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analyses/{session_id}/run")
async def run_analysis_route(request: Request, session_id: str, payload: Optional[RunPayload] = None):
	"""Run the analysis pipeline and return its outcome once every stage has finished."""
	payload = payload or RunPayload()
	options = AnalysisOptions(
		use_multi_model=payload.use_multi_model,
		models=list(payload.models) or list(request.app.state.settings.analysis_models),
		analysis_type=payload.analysis_type,
		enable_research=payload.enable_research,
		design_type=payload.design_type,
		rag_enhanced=payload.rag_enhanced,
	)
	try:
		return await run_analysis(request, session_id, options)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/analyses/{session_id}")
async def get_analysis_route(request: Request, session_id: str):
	try:
		return await get_analysis(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/analyses/{session_id}/images/{image_index}/annotations")
async def get_image_annotations_route(request: Request, session_id: str, image_index: int):
	try:
		return await get_image_annotations(request, session_id, image_index)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analyses/{session_id}/cancel")
async def cancel_analysis_route(request: Request, session_id: str):
	try:
		return await cancel_analysis(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/analyses/{session_id}")
async def delete_analysis_route(request: Request, session_id: str):
	try:
		return await delete_analysis(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/context")
async def detect_context_route(prompt: str = ""):
	"""Return the analysis category detected for `prompt`."""
	return await detect_prompt_context(prompt)
