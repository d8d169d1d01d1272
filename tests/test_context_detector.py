"""Tests for services/analysis/context_detector.py"""

import pytest

from services.analysis.context_detector import (
    ContextMapping,
    detect_context,
    keyword_weight,
    score_mapping,
)


class TestKeywordWeight:
    def test_weights_by_length(self):
        assert keyword_weight("checkout") == 3
        assert keyword_weight("color") == 2
        assert keyword_weight("cart") == 1


class TestDetectContext:
    def test_single_long_keyword(self):
        result = detect_context("checkout")
        assert result.category == "E-commerce"
        assert result.confidence == pytest.approx(0.6)
        assert result.matched is True

    def test_priority_breaks_close_scores(self):
        # contrast: 3 * 1.0 for Accessibility; color: 2 * 0.8 for Visual Design
        result = detect_context("Check the color contrast")
        assert result.category == "Accessibility"
        assert result.confidence == pytest.approx(0.6)

    def test_confidence_is_capped_at_one(self):
        result = detect_context("checkout cart purchase payment")
        assert result.confidence == 1.0

    def test_case_insensitive(self):
        assert detect_context("CHECKOUT").category == "E-commerce"

    @pytest.mark.parametrize("text", ["", "  ", "hi", "zzzz qqqq"])
    def test_falls_back_to_comprehensive(self, text):
        result = detect_context(text)
        assert result.category == "Comprehensive"
        assert result.confidence == 0.5
        assert result.matched is False

    def test_ties_resolve_to_first_mapping(self):
        first = ContextMapping("First", ("alpha",), "first template", ("a",), priority=5)
        second = ContextMapping("Second", ("alpha",), "second template", ("b",), priority=5)
        assert detect_context("alpha testing", [first, second]).category == "First"
        assert detect_context("alpha testing", [second, first]).category == "Second"

    def test_deterministic(self):
        text = "mobile checkout form with poor contrast"
        assert detect_context(text) == detect_context(text)

    def test_default_result_is_not_shared(self):
        first = detect_context("")
        first.focus_areas.append("mutated")
        assert "mutated" not in detect_context("").focus_areas

    def test_payload_uses_camel_case(self):
        payload = detect_context("checkout").to_payload()
        assert payload["category"] == "E-commerce"
        assert "focusAreas" in payload


def test_score_mapping_sums_matched_keywords():
    mapping = ContextMapping("Shop", ("checkout", "cart"), "t", ("x",), priority=10)
    assert score_mapping("checkout and cart", mapping) == pytest.approx(4.0)
    assert score_mapping("nothing here", mapping) == 0
