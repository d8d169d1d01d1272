"""Function-tool schemas forcing structured output from each stage."""

from typing import Any, Dict

from models.annotation import CATEGORIES, LEVELS, SEVERITIES

ANNOTATIONS_FUNCTION = "submit_design_annotations"
VISION_FUNCTION = "describe_screen"
RESEARCH_FUNCTION = "submit_research_insights"

_ANNOTATION_ITEM: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "x": {"type": "number", "description": "Horizontal position in percent of image width (0-100)."},
        "y": {"type": "number", "description": "Vertical position in percent of image height (0-100)."},
        "category": {"type": "string", "enum": list(CATEGORIES)},
        "severity": {"type": "string", "enum": list(SEVERITIES)},
        "feedback": {"type": "string", "description": "Specific, actionable critique for this spot."},
        "implementationEffort": {"type": "string", "enum": list(LEVELS)},
        "businessImpact": {"type": "string", "enum": list(LEVELS)},
        "imageIndex": {
            "type": "integer",
            "description": "Zero-based index of the image this annotation applies to.",
        },
    },
    "required": [
        "x",
        "y",
        "category",
        "severity",
        "feedback",
        "implementationEffort",
        "businessImpact",
        "imageIndex",
    ],
    "additionalProperties": False,
}

ANNOTATIONS_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": ANNOTATIONS_FUNCTION,
    "description": "Return positioned UX critique annotations for the supplied design images.",
    "parameters": {
        "type": "object",
        "properties": {"annotations": {"type": "array", "items": _ANNOTATION_ITEM}},
        "required": ["annotations"],
        "additionalProperties": False,
    },
    "strict": True,
}

VISION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": VISION_FUNCTION,
    "description": "Return the UI elements and screen type visible in the image.",
    "parameters": {
        "type": "object",
        "properties": {
            "labels": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Short labels for detected UI elements and the screen type.",
            },
            "confidence": {"type": "number", "description": "Overall confidence between 0 and 1."},
        },
        "required": ["labels", "confidence"],
        "additionalProperties": False,
    },
    "strict": True,
}

RESEARCH_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": RESEARCH_FUNCTION,
    "description": "Return competitive and industry insights relevant to the critique.",
    "parameters": {
        "type": "object",
        "properties": {
            "insights": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "summary": {"type": "string"},
                        "source": {"type": "string", "description": "Publication or URL backing the insight."},
                    },
                    "required": ["title", "summary", "source"],
                    "additionalProperties": False,
                },
            }
        },
        "required": ["insights"],
        "additionalProperties": False,
    },
    "strict": True,
}
