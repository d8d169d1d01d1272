"""Compose the instruction sent to the primary analysis stage.

Blocks are emitted in a fixed order: primary request, user-highlighted
areas, comprehensive checklist (when guidance is thin), comparative
instructions (multi-image sessions) and the quality footer. When the vision
stage succeeds, its detected elements are appended after the footer.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.annotation import UserAnnotation
from models.stage_io import VisionLabels
from services.analysis.context_detector import DetectionResult, detect_context

CONFIDENCE_THRESHOLD = 0.3
MIN_USABLE_PROMPT_LENGTH = 20

COMPREHENSIVE_CHECKLIST = (
    "COMPREHENSIVE ANALYSIS REQUIRED:\n"
    "Since limited specific guidance was provided, perform a thorough analysis covering:\n"
    "• User Experience (UX) - navigation, usability, user flow optimization\n"
    "• Visual Design - typography, color usage, visual hierarchy, brand consistency\n"
    "• Accessibility - color contrast, readability, inclusive design principles\n"
    "• Conversion Optimization - CTAs, forms, trust signals, friction points\n"
    "• Business Impact - professional appearance, credibility, competitive positioning\n"
)

QUALITY_REQUIREMENTS = (
    "ANALYSIS QUALITY REQUIREMENTS:\n"
    "• Provide specific, actionable feedback with clear reasoning\n"
    "• Balance critical issues with enhancement opportunities\n"
    "• Include both quick wins and strategic improvements\n"
    "• Ensure each annotation provides clear value and implementation guidance\n"
    "• Focus on user experience impact and business value\n"
)


def primary_request_block(custom_prompt: str, detection: DetectionResult) -> str:
    """Return the primary directive for a non-empty custom prompt."""
    if detection.confidence > CONFIDENCE_THRESHOLD:
        focus = ", ".join(detection.focus_areas)
        return (
            f"PRIMARY ANALYSIS REQUEST ({detection.category}):\n"
            f"{detection.template}\n"
            f"Focus areas: {focus}\n"
            f"User request: {custom_prompt}\n"
        )
    return f"PRIMARY ANALYSIS REQUEST:\n{custom_prompt}\n"


def highlighted_areas_block(per_image_annotations: Sequence[Sequence[UserAnnotation]]) -> Optional[str]:
    """Return the user-highlighted areas block, or None when nothing was placed."""
    if not any(per_image_annotations):
        return None
    lines = [
        "USER-HIGHLIGHTED AREAS FOR FOCUSED ANALYSIS:",
        "The user has specifically highlighted the following areas that need attention:",
        "",
    ]
    for image_index, annotations in enumerate(per_image_annotations):
        if not annotations:
            continue
        lines.append(f"Image {image_index + 1} - Specific Areas of Interest:")
        for number, annotation in enumerate(annotations, start=1):
            lines.append(f"{number}. Position ({annotation.x:.1f}%, {annotation.y:.1f}%): {annotation.comment}")
        lines.append("")
    lines.append(
        "ANALYSIS INSTRUCTION: Use these highlighted areas as focal points for your analysis. "
        "Provide detailed feedback on these specific concerns while also performing comprehensive "
        "analysis of the entire design."
    )
    return "\n".join(lines) + "\n"


def comparative_block(image_count: int) -> str:
    return (
        "MULTI-IMAGE COMPARATIVE ANALYSIS:\n"
        f"This is a comparative analysis of {image_count} design images. "
        "Compare the images rather than treating them independently:\n"
        "• Identify patterns and inconsistencies across designs\n"
        "• Determine which design approaches are most effective\n"
        "• Provide recommendations for improving consistency\n"
        "• Consider user journey implications across different designs\n"
        f"• Set the imageIndex field (0-based, 0 to {image_count - 1}) on every annotation "
        "to the image it applies to\n"
    )


def build_analysis_prompt(
    custom_prompt: Optional[str] = None,
    per_image_annotations: Optional[Sequence[Sequence[UserAnnotation]]] = None,
    image_count: int = 1,
) -> str:
    """Return the full analysis instruction; never empty.

    Args:
        custom_prompt: Free-text intent typed by the user.
        per_image_annotations: User point annotations, one list per image.
        image_count: Number of images in the session.
    """
    prompt = (custom_prompt or "").strip()
    detection = detect_context(prompt)
    blocks: List[str] = []

    if prompt:
        blocks.append(primary_request_block(prompt, detection))

    highlighted = highlighted_areas_block(per_image_annotations or [])
    if highlighted:
        blocks.append(highlighted)

    if len(prompt) < MIN_USABLE_PROMPT_LENGTH or detection.confidence <= CONFIDENCE_THRESHOLD:
        blocks.append(COMPREHENSIVE_CHECKLIST)

    if image_count > 1:
        blocks.append(comparative_block(image_count))

    blocks.append(QUALITY_REQUIREMENTS)
    return "\n".join(blocks)


def vision_context_block(labels: Sequence[VisionLabels]) -> Optional[str]:
    """Return the detected-elements block, or None when vision found nothing."""
    detected = [item for item in labels if item.labels]
    if not detected:
        return None
    lines = ["VISUAL INTELLIGENCE CONTEXT:", "Interface elements detected per image:"]
    for item in detected:
        lines.append(
            f"Image {item.image_index + 1}: {', '.join(item.labels)} (confidence {item.confidence:.2f})"
        )
    lines.append("Please incorporate this visual intelligence into your analysis.")
    return "\n".join(lines) + "\n"


def with_vision_context(analysis_prompt: str, labels: Optional[Sequence[VisionLabels]]) -> str:
    """Append the vision block to an already-built analysis prompt."""
    block = vision_context_block(labels or [])
    if block is None:
        return analysis_prompt
    return f"{analysis_prompt}\n{block}"
