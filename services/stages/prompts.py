"""System prompts for the AI-backed analysis stages."""


def critique_system_prompt() -> str:
    """Return the system prompt for primary design critique."""
    return (
        "You are a senior UX designer and conversion specialist reviewing product screens. "
        "Give specific, positioned feedback grounded in what is visible in the images. "
        "Place each annotation at the element it concerns using percentage coordinates."
    )


def vision_system_prompt() -> str:
    return (
        "You identify the interface elements on a product screenshot. "
        "Name the screen type and the visible UI components with short labels."
    )


def cross_check_system_prompt(analysis_type: str) -> str:
    return (
        "You are an independent reviewer cross-checking another model's UX critique. "
        f"Review with a {analysis_type} lens: keep what is right, correct what is wrong, "
        "and add important issues the first pass missed."
    )


def cross_check_user_prompt(base_annotations: str) -> str:
    return (
        "Here are the annotations from the first review as JSON:\n"
        f"{base_annotations}\n\n"
        "Return the complete list of annotations you stand behind, keeping each imageIndex unchanged."
    )


def research_system_prompt() -> str:
    return (
        "You are a design research analyst. Relate a UX critique to competitor practice, "
        "published usability research and current industry patterns, citing sources."
    )


def research_user_prompt(analysis_context: str, findings: str) -> str:
    context = analysis_context.strip() or "No specific context provided."
    return (
        f"Analysis context:\n{context}\n\n"
        f"Findings from the critique:\n{findings}\n\n"
        "Return the competitive insights most relevant to these findings."
    )


# Curated references the primary critique is grounded in when knowledge enhancement is on.
KNOWLEDGE_SOURCES = ("UX Research Database", "Best Practices Knowledge Base")


def knowledge_guidance() -> str:
    sources = " and ".join(KNOWLEDGE_SOURCES)
    return (
        "KNOWLEDGE-ENHANCED ANALYSIS:\n"
        f"Ground each recommendation in established findings from the {sources}. "
        "Prefer documented usability heuristics, accessibility guidelines and proven conversion patterns "
        "over personal taste, and name the principle behind each critical issue.\n"
    )
