from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import uuid4

CATEGORIES = ("ux", "visual", "accessibility", "conversion", "brand")
SEVERITIES = ("critical", "suggested", "enhancement")
LEVELS = ("low", "medium", "high")


@dataclass
class Annotation:
    """A single piece of positioned design feedback.

    Attributes:
        id: Stable identifier for the annotation.
        x: Horizontal position as a percentage of the image width, in [0, 100].
        y: Vertical position as a percentage of the image height, in [0, 100].
        category: One of ux, visual, accessibility, conversion, brand.
        severity: One of critical, suggested, enhancement.
        feedback: Free-text critique.
        implementation_effort: low, medium or high.
        business_impact: low, medium or high.
        image_index: Zero-based index of the session image this belongs to.
            None is read as image 0.
    """

    id: str
    x: float
    y: float
    category: str = "ux"
    severity: str = "suggested"
    feedback: str = ""
    implementation_effort: str = "medium"
    business_impact: str = "medium"
    image_index: Optional[int] = None

    @property
    def effective_image_index(self) -> int:
        return 0 if self.image_index is None else self.image_index

    def to_payload(self) -> Dict[str, Any]:
        """Return the camelCase wire representation."""
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "category": self.category,
            "severity": self.severity,
            "feedback": self.feedback,
            "implementationEffort": self.implementation_effort,
            "businessImpact": self.business_impact,
            "imageIndex": self.effective_image_index,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Annotation":
        """Build a normalised annotation from a loosely-typed stage payload.

        Unknown enum values fall back to their defaults and positions are
        clamped to [0, 100]. A missing image index becomes an explicit 0; an
        out-of-range one is kept as-is so callers can report it.

        Raises:
            ValueError: The image index is present but not a whole number.
        """
        image_index = _image_index(payload.get("imageIndex", payload.get("image_index")))
        return cls(
            id=str(payload.get("id") or uuid4().hex),
            x=_position(payload.get("x")),
            y=_position(payload.get("y")),
            category=_choice(payload.get("category"), CATEGORIES, "ux"),
            severity=_choice(payload.get("severity"), SEVERITIES, "suggested"),
            feedback=payload.get("feedback") if isinstance(payload.get("feedback"), str) else "Feedback not provided",
            implementation_effort=_choice(
                payload.get("implementationEffort", payload.get("implementation_effort")), LEVELS, "medium"
            ),
            business_impact=_choice(payload.get("businessImpact", payload.get("business_impact")), LEVELS, "medium"),
            image_index=image_index,
        )


@dataclass
class UserAnnotation:
    """A point the user placed on an image before analysis.

    Attributes:
        x: Horizontal position in percent.
        y: Vertical position in percent.
        comment: What the user wants looked at.
        image_index: Image the point was placed on; None is read as image 0.
        id: Identifier assigned by the client or generated here.
    """

    x: float
    y: float
    comment: str
    image_index: Optional[int] = None
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def effective_image_index(self) -> int:
        return 0 if self.image_index is None else self.image_index

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "comment": self.comment,
            "imageIndex": self.effective_image_index,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UserAnnotation":
        return cls(
            x=payload["x"],
            y=payload["y"],
            comment=payload["comment"],
            image_index=_image_index(payload.get("imageIndex", payload.get("image_index"))),
            id=payload.get("id") or uuid4().hex,
        )


def _image_index(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"imageIndex must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"imageIndex must be an integer, got {value!r}")


def _position(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 50.0
    return float(min(max(value, 0), 100))


def _choice(value: Any, allowed: tuple, default: str) -> str:
    return value if value in allowed else default
