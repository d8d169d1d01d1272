"""Correlate a flat annotation list with the session images it belongs to.

An annotation without an image index belongs to image 0 and only to image
0. Indices outside the session's image list are never dropped quietly:
`partition_by_image` refuses to partition them and `find_out_of_range`
reports them.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Protocol, Sequence, TypeVar

from services.analysis.errors import AnnotationCorrelationError

LOGGER = logging.getLogger(__name__)


class ImageIndexed(Protocol):
    image_index: Optional[int]


A = TypeVar("A", bound=ImageIndexed)


def belongs_to(annotation: ImageIndexed, image_index: int) -> bool:
    if annotation.image_index is None:
        return image_index == 0
    return annotation.image_index == image_index


def annotations_for_image(annotations: Sequence[A], image_index: int) -> List[A]:
    """Return the annotations for one image, preserving their relative order."""
    return [annotation for annotation in annotations if belongs_to(annotation, image_index)]


def annotations_for_image_url(annotations: Sequence[A], image_urls: Sequence[str], image_url: str) -> List[A]:
    """Resolve `image_url` to its position in the session and correlate by index."""
    try:
        image_index = list(image_urls).index(image_url)
    except ValueError as exc:
        raise AnnotationCorrelationError(f"Image {image_url!r} is not part of this session") from exc
    return annotations_for_image(annotations, image_index)


def find_out_of_range(annotations: Sequence[A], image_count: int) -> List[A]:
    """Return annotations whose image index does not exist in the session."""
    return [
        annotation
        for annotation in annotations
        if not 0 <= (0 if annotation.image_index is None else annotation.image_index) < image_count
    ]


def partition_by_image(annotations: Sequence[A], image_count: int) -> List[List[A]]:
    """Split annotations into one list per image.

    The lists are disjoint and their sizes sum to `len(annotations)`.

    Raises:
        AnnotationCorrelationError: If any annotation points at an image the
            session does not have.
    """
    offending = find_out_of_range(annotations, image_count)
    if offending:
        raise AnnotationCorrelationError(
            f"{len(offending)} annotation(s) reference images outside 0..{image_count - 1}",
            offending=offending,
        )
    partitions: List[List[A]] = [[] for _ in range(image_count)]
    for annotation in annotations:
        partitions[0 if annotation.image_index is None else annotation.image_index].append(annotation)
    return partitions


def distribution(annotations: Sequence[ImageIndexed]) -> Dict[int, int]:
    """Count annotations per effective image index."""
    counts = Counter(0 if annotation.image_index is None else annotation.image_index for annotation in annotations)
    return dict(sorted(counts.items()))


def describe_out_of_range(annotations: Sequence[ImageIndexed], image_count: int) -> List[str]:
    issues = []
    for annotation in find_out_of_range(annotations, image_count):
        issues.append(
            f"Annotation {getattr(annotation, 'id', '?')} references image {annotation.image_index} "
            f"but the session has {image_count} image(s)"
        )
    if issues:
        LOGGER.error("Annotation correlation defects: %s", issues)
    return issues
