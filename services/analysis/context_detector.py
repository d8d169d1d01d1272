"""Keyword classifier mapping free-text analysis intent to a focus category.

Deterministic and stateless: the same input against the same table always
yields the same result. Ties resolve to the earlier mapping in table order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

MIN_INPUT_LENGTH = 3


@dataclass(frozen=True)
class ContextMapping:
    category: str
    keywords: Tuple[str, ...]
    template: str
    focus_areas: Tuple[str, ...]
    priority: int
    suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectionResult:
    category: str
    template: str
    focus_areas: List[str] = field(default_factory=list)
    confidence: float = 0.5
    suggestions: List[str] = field(default_factory=list)
    matched: bool = False

    def to_payload(self) -> dict:
        return {
            "category": self.category,
            "template": self.template,
            "focusAreas": list(self.focus_areas),
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
            "matched": self.matched,
        }


CONTEXT_MAPPINGS: Tuple[ContextMapping, ...] = (
    ContextMapping(
        category="E-commerce",
        keywords=(
            "checkout", "cart", "purchase", "buy", "payment", "order", "shop",
            "ecommerce", "e-commerce", "conversion", "funnel",
        ),
        template=(
            "E-commerce conversion optimization - analyze checkout flow, product display, trust signals, "
            "and purchase journey to maximize conversions and reduce cart abandonment"
        ),
        focus_areas=("conversion", "checkout flow", "trust signals", "product display"),
        priority=10,
        suggestions=(
            "Optimize checkout conversion flow",
            "Analyze product page effectiveness",
            "Review trust signals and security indicators",
            "Evaluate cart abandonment factors",
        ),
    ),
    ContextMapping(
        category="Accessibility",
        keywords=(
            "accessibility", "accessible", "contrast", "wcag", "ada", "screen reader", "keyboard",
            "disability", "inclusive", "readable",
        ),
        template=(
            "Comprehensive accessibility audit - evaluate WCAG compliance, color contrast ratios, keyboard "
            "navigation, screen reader compatibility, and inclusive design principles"
        ),
        focus_areas=("WCAG compliance", "color contrast", "keyboard navigation", "screen reader support"),
        priority=10,
        suggestions=(
            "WCAG compliance audit",
            "Color contrast and readability review",
            "Keyboard navigation assessment",
            "Screen reader compatibility check",
        ),
    ),
    ContextMapping(
        category="Mobile UX",
        keywords=("mobile", "responsive", "touch", "tablet", "phone", "ios", "android", "device", "screen size"),
        template=(
            "Mobile user experience optimization - analyze responsive design, touch interactions, mobile "
            "navigation patterns, and device-specific usability"
        ),
        focus_areas=("responsive design", "touch targets", "mobile navigation", "device compatibility"),
        priority=9,
        suggestions=(
            "Mobile responsiveness review",
            "Touch interface optimization",
            "Mobile navigation patterns",
            "Cross-device compatibility",
        ),
    ),
    ContextMapping(
        category="Visual Design",
        keywords=(
            "visual", "design", "color", "typography", "font", "layout", "hierarchy", "brand", "aesthetic",
            "style",
        ),
        template=(
            "Visual design and brand consistency analysis - evaluate typography, color usage, visual "
            "hierarchy, brand alignment, and aesthetic appeal"
        ),
        focus_areas=("visual hierarchy", "typography", "color scheme", "brand consistency"),
        priority=8,
        suggestions=(
            "Visual hierarchy analysis",
            "Typography and readability review",
            "Brand consistency evaluation",
            "Color scheme effectiveness",
        ),
    ),
    ContextMapping(
        category="Usability",
        keywords=(
            "ux", "usability", "user experience", "navigation", "flow", "journey", "interaction", "ease of use",
        ),
        template=(
            "User experience and usability analysis - examine user flows, navigation patterns, interaction "
            "design, and task completion efficiency"
        ),
        focus_areas=("user flow", "navigation clarity", "interaction patterns", "task efficiency"),
        priority=7,
        suggestions=(
            "User flow optimization",
            "Navigation clarity assessment",
            "Task completion efficiency",
            "Interaction pattern review",
        ),
    ),
    ContextMapping(
        category="Landing Page",
        keywords=("landing", "homepage", "first impression", "hero", "above fold", "value proposition"),
        template=(
            "Landing page optimization - analyze hero section effectiveness, value proposition clarity, "
            "call-to-action placement, and first impression impact"
        ),
        focus_areas=("hero section", "value proposition", "CTA placement", "first impression"),
        priority=8,
    ),
    ContextMapping(
        category="Form Design",
        keywords=("form", "signup", "register", "login", "input", "field", "validation", "submit"),
        template=(
            "Form design and conversion optimization - evaluate form layout, field organization, "
            "validation patterns, and completion rates"
        ),
        focus_areas=("form usability", "field design", "validation", "completion rate"),
        priority=8,
    ),
)

GENERAL_SUGGESTIONS = (
    "Comprehensive UX audit",
    "Visual design analysis",
    "Usability assessment",
    "Accessibility review",
    "Conversion optimization",
    "Mobile experience evaluation",
)


def default_result() -> DetectionResult:
    return DetectionResult(
        category="Comprehensive",
        template=(
            "Comprehensive UX analysis with actionable insights - evaluate usability, visual design, "
            "accessibility, conversion potential, and overall user experience"
        ),
        focus_areas=["usability", "visual design", "accessibility", "user experience"],
        confidence=0.5,
        suggestions=list(GENERAL_SUGGESTIONS),
        matched=False,
    )


def keyword_weight(keyword: str) -> int:
    if len(keyword) > 6:
        return 3
    if len(keyword) > 4:
        return 2
    return 1


def score_mapping(text: str, mapping: ContextMapping) -> float:
    """Score one mapping against already lower-cased input."""
    priority_weight = mapping.priority / 10
    return sum(keyword_weight(keyword) * priority_weight for keyword in mapping.keywords if keyword in text)


def detect_context(user_input: str, mappings: Sequence[ContextMapping] = CONTEXT_MAPPINGS) -> DetectionResult:
    """Return the best-matching category for `user_input`.

    Falls back to the comprehensive default (confidence 0.5) for input
    shorter than three characters or input that matches no keyword.
    """
    if not user_input or len(user_input.strip()) < MIN_INPUT_LENGTH:
        return default_result()

    text = user_input.lower()
    best_mapping = None
    best_score = 0.0
    for mapping in mappings:
        score = score_mapping(text, mapping)
        if score > best_score:
            best_mapping, best_score = mapping, score

    if best_mapping is None:
        return default_result()

    return DetectionResult(
        category=best_mapping.category,
        template=best_mapping.template,
        focus_areas=list(best_mapping.focus_areas),
        confidence=min(best_score / 5, 1.0),
        suggestions=list(best_mapping.suggestions or GENERAL_SUGGESTIONS),
        matched=True,
    )
