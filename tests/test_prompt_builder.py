"""Tests for services/analysis/prompt_builder.py"""

from models.annotation import UserAnnotation
from models.stage_io import VisionLabels
from services.analysis.prompt_builder import (
    COMPREHENSIVE_CHECKLIST,
    QUALITY_REQUIREMENTS,
    build_analysis_prompt,
    highlighted_areas_block,
    vision_context_block,
    with_vision_context,
)


class TestBuildAnalysisPrompt:
    def test_empty_prompt_gets_checklist_and_footer(self):
        prompt = build_analysis_prompt(None, None, 1)
        assert "PRIMARY ANALYSIS REQUEST" not in prompt
        assert COMPREHENSIVE_CHECKLIST in prompt
        assert "MULTI-IMAGE COMPARATIVE ANALYSIS" not in prompt
        assert prompt.rstrip().endswith(QUALITY_REQUIREMENTS.rstrip())

    def test_confident_long_prompt_skips_checklist(self):
        prompt = build_analysis_prompt("Check the color contrast of the buttons please", None, 1)
        assert "PRIMARY ANALYSIS REQUEST (Accessibility)" in prompt
        assert "User request: Check the color contrast of the buttons please" in prompt
        assert COMPREHENSIVE_CHECKLIST not in prompt

    def test_short_prompt_keeps_checklist(self):
        prompt = build_analysis_prompt("checkout", None, 1)
        assert "PRIMARY ANALYSIS REQUEST (E-commerce)" in prompt
        assert COMPREHENSIVE_CHECKLIST in prompt

    def test_multiple_images_add_comparative_block(self):
        prompt = build_analysis_prompt("", None, 3)
        assert "comparative analysis of 3 design images" in prompt
        assert "0 to 2" in prompt

    def test_block_order(self):
        notes = [[], [UserAnnotation(x=10, y=20, comment="Too busy", image_index=1)]]
        prompt = build_analysis_prompt("checkout", notes, 2)
        positions = [
            prompt.index("PRIMARY ANALYSIS REQUEST"),
            prompt.index("USER-HIGHLIGHTED AREAS"),
            prompt.index("COMPREHENSIVE ANALYSIS REQUIRED"),
            prompt.index("MULTI-IMAGE COMPARATIVE ANALYSIS"),
            prompt.index("ANALYSIS QUALITY REQUIREMENTS"),
        ]
        assert positions == sorted(positions)

    def test_never_empty(self):
        assert build_analysis_prompt().strip()


class TestHighlightedAreas:
    def test_none_when_nothing_placed(self):
        assert highlighted_areas_block([[], []]) is None

    def test_lines_grouped_per_image(self):
        block = highlighted_areas_block(
            [[], [UserAnnotation(x=10, y=20, comment="Too busy", image_index=1)]]
        )
        assert "Image 1 - Specific Areas of Interest" not in block
        assert "Image 2 - Specific Areas of Interest:" in block
        assert "1. Position (10.0%, 20.0%): Too busy" in block


class TestVisionContext:
    def test_none_without_labels(self):
        assert vision_context_block([VisionLabels(image_index=0)]) is None
        assert with_vision_context("base prompt", None) == "base prompt"

    def test_labels_listed_per_image(self):
        labels = [
            VisionLabels(image_index=0, labels=["hero", "cta"], confidence=0.8),
            VisionLabels(image_index=1, labels=[], confidence=0.1),
            VisionLabels(image_index=2, labels=["form"], confidence=0.65),
        ]
        prompt = with_vision_context("base prompt", labels)
        assert prompt.startswith("base prompt\n")
        assert "Image 1: hero, cta (confidence 0.80)" in prompt
        assert "Image 2:" not in prompt
        assert "Image 3: form (confidence 0.65)" in prompt
