"""Tests for utils/media_validation.py"""

import base64

import pytest

from models.annotation import UserAnnotation
from services.analysis.errors import ValidationError
from utils.media_validation import decode_data_url, validate_analysis_inputs, validate_image_reference


class TestImageReference:
    def test_accepts_http_url(self):
        validate_image_reference("https://example.com/a.png")

    def test_accepts_decodable_data_url(self, png_data_url):
        validate_image_reference(png_data_url)

    @pytest.mark.parametrize("value", ["", "ftp://example.com/a.png", "not a url", "data:text/plain;base64,aGk="])
    def test_rejects_bad_references(self, value):
        with pytest.raises(ValidationError):
            validate_image_reference(value, 2)

    def test_rejects_non_image_bytes(self):
        url = "data:image/png;base64," + base64.b64encode(b"definitely not a png").decode("ascii")
        with pytest.raises(ValidationError, match="could not be decoded"):
            validate_image_reference(url)

    def test_rejects_bad_base64(self):
        with pytest.raises(ValidationError):
            decode_data_url("data:image/png;base64,@@@@")


class TestAnalysisInputs:
    def test_requires_images(self):
        with pytest.raises(ValidationError):
            validate_analysis_inputs([])

    def test_caps_image_count(self):
        with pytest.raises(ValidationError):
            validate_analysis_inputs([f"https://example.com/{n}.png" for n in range(11)])

    def test_caps_prompt_length(self):
        with pytest.raises(ValidationError):
            validate_analysis_inputs(["https://example.com/a.png"], "x" * 2001)

    def test_user_annotation_bounds(self):
        urls = ["https://example.com/a.png"]
        with pytest.raises(ValidationError):
            validate_analysis_inputs(urls, None, [UserAnnotation(x=101, y=5, comment="edge")])
        with pytest.raises(ValidationError):
            validate_analysis_inputs(urls, None, [UserAnnotation(x=5, y=5, comment="edge", image_index=1)])
        validate_analysis_inputs(urls, None, [UserAnnotation(x=5, y=5, comment="ok")])
