"""Helpers to parse Responses API outputs."""

import json
from typing import Any, Dict, Optional

from services.analysis.errors import StageResponseError


def parse_function_call(response: Any, *, tool_name: str) -> Dict[str, Any]:
    """Return the decoded arguments of the named function call.

    Raises:
        StageResponseError: If the call is missing or its arguments are not JSON.
    """
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "function_call" or getattr(item, "name", None) != tool_name:
            continue
        try:
            args = json.loads(getattr(item, "arguments", "{}") or "{}")
        except json.JSONDecodeError as exc:
            raise StageResponseError(f"Arguments for '{tool_name}' are not valid JSON") from exc
        if not isinstance(args, dict):
            raise StageResponseError(f"Arguments for '{tool_name}' must be a JSON object")
        return args
    raise StageResponseError(f"No function_call output for '{tool_name}' found in Responses API output.")


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
