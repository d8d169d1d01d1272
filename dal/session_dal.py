"""Async Data Access Layer for analysis sessions.

Provides SessionDAL with async persistence for the ANALYSIS_SESSION,
STAGE_RESULT and ANNOTATION tables created by
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from models.annotation import Annotation, UserAnnotation
from models.session_models import AnalysisSession, SessionStatus, StageName, StageResult
from utils.database_init import AsyncDatabaseInitializer


class SessionDAL:
    """Data access layer for analysis sessions.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _SESSION_COLUMNS = (
        "session_id",
        "status",
        "current_stage",
        "prompt",
        "analysis_prompt",
        "image_urls",
        "user_annotations",
        "error",
        "error_kind",
        "integrity_issues",
        "created_at",
        "updated_at",
    )
    _SESSION_LIST = ", ".join(_SESSION_COLUMNS)
    _ANNOTATION_COLUMNS = (
        "id",
        "image_index",
        "x",
        "y",
        "category",
        "severity",
        "feedback",
        "implementation_effort",
        "business_impact",
    )
    _ANNOTATION_LIST = ", ".join(_ANNOTATION_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def save_session(self, session: AnalysisSession) -> None:
        """Write the full session state, replacing any previous copy.

        Stage results and annotations are rewritten in the same transaction
        so a reader never sees a half-updated session.
        """
        placeholders = ", ".join("?" for _ in self._SESSION_COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in self._SESSION_COLUMNS[1:])
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO ANALYSIS_SESSION ({self._SESSION_LIST}) VALUES ({placeholders}) "
                f"ON CONFLICT(session_id) DO UPDATE SET {updates}",
                (
                    session.session_id,
                    session.status.value,
                    session.current_stage.value if session.current_stage else None,
                    session.prompt,
                    session.analysis_prompt,
                    json.dumps(session.image_urls),
                    json.dumps([annotation.to_payload() for annotation in session.user_annotations]),
                    session.error,
                    session.error_kind,
                    json.dumps(session.integrity_issues),
                    session.created_at,
                    session.updated_at,
                ),
            )
            await conn.execute("DELETE FROM STAGE_RESULT WHERE session_id = ?", (session.session_id,))
            await conn.executemany(
                "INSERT INTO STAGE_RESULT (session_id, position, stage, success, payload, error, error_kind, "
                "duration_ms) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        session.session_id,
                        position,
                        result.stage.value,
                        int(result.success),
                        json.dumps(result.payload),
                        result.error,
                        result.error_kind,
                        result.duration_ms,
                    )
                    for position, result in enumerate(session.stage_results)
                ],
            )
            await conn.execute("DELETE FROM ANNOTATION WHERE session_id = ?", (session.session_id,))
            await conn.executemany(
                f"INSERT INTO ANNOTATION (session_id, position, {self._ANNOTATION_LIST}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        session.session_id,
                        position,
                        annotation.id,
                        annotation.effective_image_index,
                        annotation.x,
                        annotation.y,
                        annotation.category,
                        annotation.severity,
                        annotation.feedback,
                        annotation.implementation_effort,
                        annotation.business_impact,
                    )
                    for position, annotation in enumerate(session.annotations)
                ],
            )
            await conn.commit()

    async def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        """Return the stored session for `session_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._SESSION_LIST} FROM ANALYSIS_SESSION WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            if row is None:
                return None
            cur = await conn.execute(
                "SELECT stage, success, payload, error, error_kind, duration_ms FROM STAGE_RESULT "
                "WHERE session_id = ? ORDER BY position",
                (session_id,),
            )
            stage_rows = await cur.fetchall()
        session = self._row_to_session(row)
        session.stage_results = [self._row_to_stage_result(r) for r in stage_rows]
        session.annotations = await self.list_annotations(session_id)
        return session

    async def list_annotations(self, session_id: str, image_index: Optional[int] = None) -> List[Annotation]:
        """List a session's annotations in their original order.

        Args:
            session_id: Session to read.
            image_index: When given, only annotations attached to that image.
        """
        sql = f"SELECT {self._ANNOTATION_LIST} FROM ANNOTATION WHERE session_id = ?"
        params: list = [session_id]
        if image_index is not None:
            sql += " AND image_index = ?"
            params.append(image_index)
        sql += " ORDER BY position"
        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            rows = await cur.fetchall()
            return [self._row_to_annotation(r) for r in rows]

    async def list_sessions(self, limit: int = 100, offset: int = 0) -> List[dict]:
        """Return lightweight summaries of stored sessions, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT session_id, status, error_kind, updated_at FROM ANALYSIS_SESSION "
                "ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cur.fetchall()
            return [
                {"session_id": r[0], "status": r[1], "error_kind": r[2], "updated_at": r[3]} for r in rows
            ]

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its children. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM ANALYSIS_SESSION WHERE session_id = ?", (session_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _row_to_session(row: Sequence[object]) -> AnalysisSession:
        """Convert an ANALYSIS_SESSION row tuple into an AnalysisSession."""
        return AnalysisSession(
            session_id=row[0],
            status=SessionStatus(row[1]),
            current_stage=StageName(row[2]) if row[2] else None,
            prompt=row[3] or "",
            analysis_prompt=row[4],
            image_urls=json.loads(row[5]),
            user_annotations=[UserAnnotation.from_payload(item) for item in json.loads(row[6] or "[]")],
            error=row[7],
            error_kind=row[8],
            integrity_issues=json.loads(row[9] or "[]"),
            created_at=row[10],
            updated_at=row[11],
        )

    @staticmethod
    def _row_to_stage_result(row: Sequence[object]) -> StageResult:
        return StageResult(
            stage=StageName(row[0]),
            success=bool(row[1]),
            payload=json.loads(row[2]) if row[2] is not None else None,
            error=row[3],
            error_kind=row[4],
            duration_ms=row[5],
        )

    @staticmethod
    def _row_to_annotation(row: Sequence[object]) -> Annotation:
        return Annotation(
            id=row[0],
            image_index=row[1],
            x=row[2],
            y=row[3],
            category=row[4],
            severity=row[5],
            feedback=row[6],
            implementation_effort=row[7],
            business_impact=row[8],
        )
