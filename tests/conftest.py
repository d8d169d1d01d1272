"""
Pytest configuration for the analysis service test suite.

Configures:
- project root on sys.path (flat layout without __init__ files)
- pytest-asyncio for async test support
- fake stage invokers shared across test modules
"""
import asyncio
import base64
import io
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from PIL import Image

from models.annotation import Annotation
from models.stage_io import PrimaryAnalysisResponse, ResearchInsight, VisionLabels

pytest_plugins = ["pytest_asyncio"]


def make_annotation(image_index=0, x=10.0, y=20.0, category="ux", feedback="Tighten spacing"):
    return Annotation(
        id=f"a-{image_index}-{x}-{y}-{category}",
        x=x,
        y=y,
        category=category,
        feedback=feedback,
        image_index=image_index,
    )


class FakePrimary:
    """Primary stage that replays a scripted list of results or exceptions."""

    def __init__(self, script=None, model="fake-primary"):
        self.script = list(script or [])
        self.model = model
        self.requests = []
        self.started = asyncio.Event()

    async def analyze(self, request):
        self.requests.append(request)
        self.started.set()
        step = self.script.pop(0) if self.script else PrimaryAnalysisResponse(
            success=True, annotations=[make_annotation()], model=self.model
        )
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step(request)
        return step


class FakeVision:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    async def detect(self, session_id, image_urls):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [VisionLabels(image_index=i, labels=["button"], confidence=0.9) for i in range(len(image_urls))]


class FakeMultiModel:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def cross_check(self, session_id, base_analysis, models, analysis_type):
        self.calls.append((session_id, list(models), analysis_type))
        if self.error is not None:
            raise self.error
        return list(self.result if self.result is not None else base_analysis.annotations)


class FakeResearch:
    def __init__(self, insights=None, error=None, blocker=None):
        self.insights = insights if insights is not None else [
            ResearchInsight(title="Baymard checkout study", summary="Guest checkout lifts conversion", source="baymard")
        ]
        self.error = error
        self.blocker = blocker
        self.started = asyncio.Event()

    async def research(self, session_id, analysis_context, analysis_results):
        self.started.set()
        if self.blocker is not None:
            await self.blocker.wait()
        if self.error is not None:
            raise self.error
        return list(self.insights)


class RecordingRepository:
    def __init__(self):
        self.snapshots = []

    async def save_session(self, session):
        self.snapshots.append(session.snapshot())


async def no_sleep(seconds):
    return None


@pytest.fixture
def png_data_url():
    """A tiny PNG encoded as a base64 data URL."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def image_urls():
    return ["https://example.com/home.png", "https://example.com/checkout.png"]
