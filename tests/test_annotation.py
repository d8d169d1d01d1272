"""Tests for models/annotation.py"""

import pytest

from models.annotation import Annotation, UserAnnotation


class TestAnnotationFromPayload:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, 0),
            (2, 2),
            (1.0, 1),
            ("1", 1),
            (" 3 ", 3),
            (-1, -1),
        ],
    )
    def test_image_index_values(self, raw, expected):
        payload = {"x": 10, "y": 10, "feedback": "Spacing"}
        if raw is not None:
            payload["imageIndex"] = raw
        assert Annotation.from_payload(payload).image_index == expected

    @pytest.mark.parametrize("raw", [1.7, "one", True, [1], {"index": 1}])
    def test_non_integral_image_index_is_rejected(self, raw):
        with pytest.raises(ValueError, match="imageIndex"):
            Annotation.from_payload({"x": 10, "y": 10, "imageIndex": raw})

    def test_out_of_range_index_is_kept(self):
        assert Annotation.from_payload({"x": 1, "y": 1, "imageIndex": 12}).image_index == 12


class TestUserAnnotationWire:
    def test_payload_uses_camel_case_like_ai_annotations(self):
        note = UserAnnotation(x=5, y=6, comment="logo", id="u1")
        ai = Annotation(id="a1", x=5, y=6)
        assert note.to_payload() == {"id": "u1", "x": 5, "y": 6, "comment": "logo", "imageIndex": 0}
        assert "imageIndex" in ai.to_payload()
        assert "image_index" not in note.to_payload()

    def test_from_payload_reads_its_own_output(self):
        note = UserAnnotation(x=5, y=6, comment="logo", image_index=2, id="u1")
        assert UserAnnotation.from_payload(note.to_payload()) == note

    def test_from_payload_accepts_stored_snake_case(self):
        note = UserAnnotation.from_payload({"x": 1, "y": 2, "comment": "c", "image_index": 1, "id": "u2"})
        assert note.image_index == 1
