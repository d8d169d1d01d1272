"""Validation helpers for analysis requests and the images they reference."""

import base64
import binascii
import io
import re
from typing import Optional, Sequence
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from models.annotation import UserAnnotation
from services.analysis.errors import ValidationError

MAX_IMAGES = 10
MAX_PROMPT_LENGTH = 2000

DATA_URL_PATTERN = re.compile(r"^data:image/(jpeg|jpg|png|webp|gif);base64,(.+)$", re.IGNORECASE | re.DOTALL)


def decode_data_url(data_url: str, index: int = 0) -> bytes:
    """Return the image bytes carried by a base64 data URL.

    Raises:
        ValidationError: If the URL is malformed or the payload is not base64.
    """
    match = DATA_URL_PATTERN.match(data_url)
    if not match:
        raise ValidationError(
            f"Image at index {index} has invalid data URL format. "
            'Expected: "data:image/{jpeg|png|webp|gif};base64,{base64data}"'
        )
    try:
        return base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"Image at index {index} contains invalid base64 characters") from exc


def ensure_decodable_image(image_bytes: bytes, index: int = 0) -> None:
    """Confirm that Pillow can identify the bytes as an image."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValidationError(f"Image at index {index} could not be decoded as an image") from exc


def validate_image_reference(image_url: str, index: int = 0) -> None:
    """Accept an http(s) URL or a base64 image data URL that decodes to an image."""
    if not isinstance(image_url, str) or not image_url.strip():
        raise ValidationError(f"Image data at index {index} is invalid - must be a non-empty string")
    if image_url.startswith("data:"):
        ensure_decodable_image(decode_data_url(image_url, index), index)
        return
    parsed = urlparse(image_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            f"Image at index {index} must be either a valid HTTP URL or a base64 data URL starting with "
            '"data:image/"'
        )


def validate_analysis_inputs(
    image_urls: Sequence[str],
    prompt: Optional[str] = None,
    user_annotations: Sequence[UserAnnotation] = (),
) -> None:
    """Validate everything the pipeline needs before it starts.

    Raises:
        ValidationError: On the first problem found.
    """
    if not image_urls:
        raise ValidationError("At least one image is required")
    if len(image_urls) > MAX_IMAGES:
        raise ValidationError(f"Maximum {MAX_IMAGES} images allowed")
    for index, image_url in enumerate(image_urls):
        validate_image_reference(image_url, index)

    if prompt is not None and len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(f"Analysis prompt must be less than {MAX_PROMPT_LENGTH} characters")

    for annotation in user_annotations:
        if not (0 <= annotation.x <= 100 and 0 <= annotation.y <= 100):
            raise ValidationError(f"User annotation {annotation.id} must be positioned within 0-100%")
        if not 0 <= annotation.effective_image_index < len(image_urls):
            raise ValidationError(
                f"User annotation {annotation.id} references image {annotation.image_index}, "
                f"but only {len(image_urls)} image(s) were supplied"
            )
