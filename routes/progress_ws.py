"""WebSocket endpoint streaming progress and session updates for one analysis."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from dal.session_dal import SessionDAL
from models.session_models import SessionStatus
from services.analysis.errors import SessionNotFoundError
from services.session_store import AnalysisRun, SessionStore

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _require_session_store(websocket: WebSocket) -> SessionStore:
	store = getattr(websocket.app.state, "session_store", None)
	if store is None:
		raise HTTPException(status_code=500, detail="Session store unavailable")
	return store


def _is_terminal(snapshot: Dict[str, Any]) -> bool:
	return SessionStatus(snapshot["status"]).terminal


async def _find_run(websocket: WebSocket, store: SessionStore, session_id: str) -> Optional[AnalysisRun]:
	"""Return the held run, or a stored session this process no longer holds."""
	try:
		return store.get(session_id)
	except SessionNotFoundError:
		db_initializer = getattr(websocket.app.state, "db_initializer", None)
		if db_initializer is None:
			return None
		session = await SessionDAL(db_initializer).get_session(session_id)
		if session is None:
			return None
		if session.status.terminal:
			return AnalysisRun(session=session)
		return store.adopt(session)


@router.websocket("/ws/analyses/{session_id}")
async def progress_socket(websocket: WebSocket, session_id: str, store: SessionStore = Depends(_require_session_store)):
	"""Push `progress` and `session` frames until the session reaches a terminal status.

	The client is not expected to send anything; its messages are read only
	so that a disconnect ends the stream and frees the subscriptions.
	"""
	await websocket.accept()
	run = await _find_run(websocket, store, session_id)
	if run is None:
		await websocket.send_text(json.dumps({"type": "error", "detail": "Session not found"}))
		await websocket.close()
		return

	queue: asyncio.Queue = asyncio.Queue()
	unsubscribe_progress = run.progress.subscribe(
		lambda step, percentage: queue.put_nowait({"type": "progress", "step": step, "percentage": percentage})
	)
	unsubscribe_session = run.progress.subscribe_session(
		lambda snapshot: queue.put_nowait({"type": "session", "session": snapshot})
	)
	receiver: Optional[asyncio.Task] = None
	getter: Optional[asyncio.Task] = None
	try:
		snapshot = run.session.snapshot()
		await websocket.send_text(json.dumps({"type": "session", "session": snapshot}))
		finished = _is_terminal(snapshot)
		while not finished:
			if receiver is None:
				receiver = asyncio.create_task(websocket.receive())
			getter = asyncio.create_task(queue.get())
			done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)
			if receiver in done:
				message = receiver.result()
				receiver = None
				if message["type"] == "websocket.disconnect":
					LOGGER.debug("Progress socket for %s disconnected", session_id)
					return
			if getter not in done:
				getter.cancel()
				continue
			frame = getter.result()
			await websocket.send_text(json.dumps(frame))
			if frame["type"] == "progress" and frame["percentage"] >= 100:
				finished = _is_terminal(run.session.snapshot())
	except WebSocketDisconnect:
		LOGGER.debug("Progress socket for %s disconnected", session_id)
		return
	finally:
		for task in (receiver, getter):
			if task is not None and not task.done():
				task.cancel()
		unsubscribe_progress()
		unsubscribe_session()
	await websocket.close()
