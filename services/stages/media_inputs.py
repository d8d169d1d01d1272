"""Utilities to build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List, Sequence


def text_message(role: str, text: str) -> Dict[str, Any]:
    return {"type": "message", "role": role, "content": [{"type": "input_text", "text": text}]}


def build_image_content(image_urls: Sequence[str]) -> List[Dict[str, Any]]:
    """Label each image with its zero-based index so the model can reference it."""
    content: List[Dict[str, Any]] = []
    for index, image_url in enumerate(image_urls):
        content.append({"type": "input_text", "text": f"Image index {index}:"})
        content.append({"type": "input_image", "image_url": image_url})
    return content


def build_inputs(system_prompt: str, user_prompt: str, *, image_urls: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """Build the Responses API input array: system, instruction, then images."""
    inputs: List[Dict[str, Any]] = [text_message("system", system_prompt), text_message("user", user_prompt)]
    if image_urls:
        inputs.append({"type": "message", "role": "user", "content": build_image_content(image_urls)})
    return inputs
