"""Helpers for pulling JSON out of free-form model output."""
import json
import re
from typing import Any, Dict

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?|\n?\s*```")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence wrappers such as ```json ... ```."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def extract_json_from_text(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from model output.

    Strips code fences first; if the remainder still is not valid JSON,
    falls back to the outermost ``{...}`` span.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    if not text or not text.strip():
        raise ValueError("Empty response text")

    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in response")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
