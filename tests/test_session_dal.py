"""Tests for dal/session_dal.py and utils/database_init.py"""

import pytest

from conftest import make_annotation
from dal.session_dal import SessionDAL
from models.annotation import UserAnnotation
from models.session_models import AnalysisSession, SessionStatus, StageName, StageResult
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def dal(tmp_path):
    return SessionDAL(AsyncDatabaseInitializer(database_dir=tmp_path))


def _session():
    return AnalysisSession(
        session_id="abc",
        image_urls=["https://example.com/a.png", "https://example.com/b.png"],
        prompt="checkout",
        user_annotations=[UserAnnotation(x=5, y=6, comment="logo", image_index=1, id="u1")],
        status=SessionStatus.COMPLETED,
        stage_results=[
            StageResult(stage=StageName.VISION, success=False, error="down", error_kind="transient"),
            StageResult(stage=StageName.PRIMARY, success=True, payload={"annotations": []}, duration_ms=42),
        ],
        annotations=[make_annotation(1, x=1), make_annotation(0, x=2), make_annotation(1, x=3)],
        integrity_issues=["example issue"],
    )


class TestSessionDAL:
    @pytest.mark.asyncio
    async def test_round_trip(self, dal):
        await dal.save_session(_session())
        loaded = await dal.get_session("abc")

        assert loaded.status == SessionStatus.COMPLETED
        assert loaded.image_urls == ["https://example.com/a.png", "https://example.com/b.png"]
        assert loaded.user_annotations[0].image_index == 1
        assert [(r.stage, r.success) for r in loaded.stage_results] == [
            (StageName.VISION, False),
            (StageName.PRIMARY, True),
        ]
        assert loaded.stage_results[1].payload == {"annotations": []}
        assert [a.x for a in loaded.annotations] == [1, 2, 3]
        assert loaded.integrity_issues == ["example issue"]

    @pytest.mark.asyncio
    async def test_list_annotations_per_image(self, dal):
        await dal.save_session(_session())
        assert [a.x for a in await dal.list_annotations("abc", image_index=1)] == [1, 3]
        assert [a.x for a in await dal.list_annotations("abc", image_index=0)] == [2]

    @pytest.mark.asyncio
    async def test_save_replaces_children(self, dal):
        session = _session()
        await dal.save_session(session)
        session.annotations = session.annotations[:1]
        session.stage_results = session.stage_results[:1]
        await dal.save_session(session)
        loaded = await dal.get_session("abc")
        assert len(loaded.annotations) == 1
        assert len(loaded.stage_results) == 1

    @pytest.mark.asyncio
    async def test_missing_session(self, dal):
        assert await dal.get_session("nope") is None

    @pytest.mark.asyncio
    async def test_delete_and_list(self, dal):
        await dal.save_session(_session())
        assert [s["session_id"] for s in await dal.list_sessions()] == ["abc"]
        assert await dal.delete_session("abc") is True
        assert await dal.list_annotations("abc") == []


class TestDatabaseInitializer:
    def test_requires_directory(self, monkeypatch):
        monkeypatch.delenv("DATABASE_DIR", raising=False)
        with pytest.raises(RuntimeError):
            AsyncDatabaseInitializer()

    def test_rejects_file_path(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(RuntimeError):
            AsyncDatabaseInitializer(database_dir=target)

    @pytest.mark.asyncio
    async def test_reset_wipes_existing_data(self, tmp_path):
        await SessionDAL(AsyncDatabaseInitializer(database_dir=tmp_path)).save_session(_session())
        kept = SessionDAL(AsyncDatabaseInitializer(database_dir=tmp_path))
        assert await kept.get_session("abc") is not None
        wiped = SessionDAL(AsyncDatabaseInitializer(reset=True, database_dir=tmp_path))
        assert await wiped.get_session("abc") is None
