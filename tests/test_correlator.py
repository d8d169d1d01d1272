"""Tests for services/analysis/correlator.py"""

import pytest

from models.annotation import Annotation, UserAnnotation
from services.analysis.correlator import (
    annotations_for_image,
    annotations_for_image_url,
    describe_out_of_range,
    distribution,
    find_out_of_range,
    partition_by_image,
)
from services.analysis.errors import AnnotationCorrelationError


def _annotations(indices):
    return [Annotation(id=f"a{n}", x=10, y=10, image_index=index) for n, index in enumerate(indices)]


class TestAnnotationsForImage:
    def test_preserves_relative_order(self):
        annotations = _annotations([0, 1, 1, 2])
        assert [a.id for a in annotations_for_image(annotations, 1)] == ["a1", "a2"]
        assert [a.id for a in annotations_for_image(annotations, 2)] == ["a3"]

    def test_missing_index_belongs_to_first_image_only(self):
        annotations = _annotations([None, 1])
        assert [a.id for a in annotations_for_image(annotations, 0)] == ["a0"]
        assert [a.id for a in annotations_for_image(annotations, 1)] == ["a1"]

    def test_works_for_user_annotations(self):
        notes = [UserAnnotation(x=1, y=1, comment="logo", image_index=None)]
        assert annotations_for_image(notes, 0) == notes

    def test_by_url(self):
        annotations = _annotations([0, 1])
        urls = ["https://example.com/a.png", "https://example.com/b.png"]
        assert [a.id for a in annotations_for_image_url(annotations, urls, urls[1])] == ["a1"]
        with pytest.raises(AnnotationCorrelationError):
            annotations_for_image_url(annotations, urls, "https://example.com/missing.png")


class TestPartition:
    def test_sizes_sum_to_total(self):
        annotations = _annotations([0, 1, 1, 2, None])
        partitions = partition_by_image(annotations, 3)
        assert [len(p) for p in partitions] == [2, 2, 1]
        assert sum(len(p) for p in partitions) == len(annotations)

    def test_out_of_range_is_refused(self):
        annotations = _annotations([0, 5])
        with pytest.raises(AnnotationCorrelationError) as excinfo:
            partition_by_image(annotations, 2)
        assert [a.id for a in excinfo.value.offending] == ["a1"]


class TestIntegrity:
    def test_find_out_of_range(self):
        annotations = _annotations([0, 2, -1])
        assert [a.id for a in find_out_of_range(annotations, 2)] == ["a1", "a2"]

    def test_describe_out_of_range(self):
        issues = describe_out_of_range(_annotations([0, 3]), 2)
        assert len(issues) == 1
        assert "image 3" in issues[0]

    def test_distribution(self):
        assert distribution(_annotations([1, None, 0, 1])) == {0: 2, 1: 2}
