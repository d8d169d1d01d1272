"""Request handlers for analysis sessions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from fastapi import HTTPException, Request

from dal.session_dal import SessionDAL
from models.annotation import UserAnnotation
from models.session_models import AnalysisOptions, AnalysisSession, SessionStatus
from services.analysis.context_detector import detect_context
from services.analysis.correlator import annotations_for_image
from services.analysis.errors import AnalysisError, SessionNotFoundError, SessionStateError, ValidationError
from services.analysis.orchestrator import AnalysisOrchestrator
from services.session_store import AnalysisRun, SessionStore
from utils.media_validation import validate_analysis_inputs

LOGGER = logging.getLogger(__name__)


def http_error(exc: AnalysisError) -> HTTPException:
	"""Translate a pipeline error into the matching HTTP status."""
	if isinstance(exc, SessionNotFoundError):
		return HTTPException(status_code=404, detail=str(exc))
	if isinstance(exc, SessionStateError):
		return HTTPException(status_code=409, detail=str(exc))
	if isinstance(exc, ValidationError):
		return HTTPException(status_code=400, detail=str(exc))
	return HTTPException(status_code=500, detail=str(exc))


async def create_analysis(
	request: Request,
	image_urls: Sequence[str],
	prompt: Optional[str] = None,
	user_annotations: Sequence[UserAnnotation] = (),
) -> Dict[str, Any]:
	"""Validate the inputs and register a new pending session."""
	try:
		validate_analysis_inputs(image_urls, prompt, user_annotations)
	except ValidationError as exc:
		raise http_error(exc) from exc

	store: SessionStore = request.app.state.session_store
	run = store.create(image_urls, prompt or "", user_annotations)
	await SessionDAL(request.app.state.db_initializer).save_session(run.session)
	LOGGER.info("Created analysis session %s with %d image(s)", run.session.session_id, run.session.image_count)
	return run.session.snapshot()


async def run_analysis(request: Request, session_id: str, options: AnalysisOptions) -> Dict[str, Any]:
	"""Run the stage pipeline for a pending session and return its outcome."""
	store: SessionStore = request.app.state.session_store
	orchestrator: AnalysisOrchestrator = request.app.state.orchestrator
	run = None
	try:
		run = await _held_run(request, session_id)
		outcome = await orchestrator.run(
			run.session,
			options,
			progress=run.progress,
			cancellation=run.cancellation,
		)
	except ValidationError as exc:
		raise http_error(exc) from exc
	finally:
		if run is not None and run.session.status.terminal:
			store.finish(session_id)
	return outcome.to_payload()


async def _held_run(request: Request, session_id: str) -> AnalysisRun:
	"""Return the in-memory run, re-adopting a stored session this process no longer holds."""
	store: SessionStore = request.app.state.session_store
	try:
		return store.get(session_id)
	except SessionNotFoundError:
		session = await SessionDAL(request.app.state.db_initializer).get_session(session_id)
		if session is None:
			raise
		return store.adopt(session)


async def _load_session(request: Request, session_id: str) -> AnalysisSession:
	store: SessionStore = request.app.state.session_store
	try:
		return store.get(session_id).session
	except SessionNotFoundError:
		session = await SessionDAL(request.app.state.db_initializer).get_session(session_id)
		if session is None:
			raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
		return session


async def get_analysis(request: Request, session_id: str) -> Dict[str, Any]:
	"""Return the current session snapshot with its latest progress event."""
	session = await _load_session(request, session_id)
	payload = session.snapshot()
	payload["stages"] = session.envelope()
	payload["progress"] = None
	try:
		latest = request.app.state.session_store.get(session_id).progress.latest
	except SessionNotFoundError:
		latest = None
	if latest is not None:
		payload["progress"] = {"step": latest.step, "percentage": latest.percentage}
	return payload


async def get_image_annotations(request: Request, session_id: str, image_index: int) -> Dict[str, Any]:
	"""Return the AI and user-authored annotations attached to one image of a session."""
	session = await _load_session(request, session_id)
	if not 0 <= image_index < session.image_count:
		raise HTTPException(
			status_code=404,
			detail=f"Image {image_index} does not exist; session has {session.image_count} image(s)",
		)
	return {
		"session_id": session_id,
		"image_index": image_index,
		"image_url": session.image_urls[image_index],
		"annotations": [a.to_payload() for a in annotations_for_image(session.annotations, image_index)],
		"user_annotations": [a.to_payload() for a in annotations_for_image(session.user_annotations, image_index)],
	}


async def cancel_analysis(request: Request, session_id: str) -> Dict[str, Any]:
	"""Abort the session's in-flight stage, if any."""
	store: SessionStore = request.app.state.session_store
	try:
		run = store.cancel(session_id)
	except SessionNotFoundError as exc:
		session = await SessionDAL(request.app.state.db_initializer).get_session(session_id)
		if session is None:
			raise http_error(exc) from exc
		return {"session_id": session_id, "cancelled": False, "status": session.status.value}
	LOGGER.info("Cancellation requested for session %s", session_id)
	return {"session_id": session_id, "cancelled": True, "status": run.session.status.value}


async def list_analyses(request: Request, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
	"""Return stored session summaries, newest first."""
	if limit < 1 or offset < 0:
		raise HTTPException(status_code=400, detail="limit must be positive and offset non-negative")
	sessions = await SessionDAL(request.app.state.db_initializer).list_sessions(limit=limit, offset=offset)
	return {"sessions": sessions, "limit": limit, "offset": offset}


async def delete_analysis(request: Request, session_id: str) -> Dict[str, Any]:
	"""Delete a finished or pending session; a running one must be cancelled first."""
	store: SessionStore = request.app.state.session_store
	try:
		run = store.get(session_id)
	except SessionNotFoundError:
		run = None
	if run is not None and run.session.status == SessionStatus.PROCESSING:
		raise http_error(SessionStateError(f"Session {session_id} is still processing; cancel it first"))
	deleted = await SessionDAL(request.app.state.db_initializer).delete_session(session_id)
	if run is None and not deleted:
		raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
	store.discard(session_id)
	LOGGER.info("Deleted analysis session %s", session_id)
	return {"session_id": session_id, "deleted": True}


async def detect_prompt_context(prompt: str) -> Dict[str, Any]:
	"""Classify a free-text prompt into an analysis category."""
	return detect_context(prompt).to_payload()
