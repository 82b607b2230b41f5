import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger()

# Leading fence with an optional language tag (```json, ```JSON, ```), and a trailing fence.
_OPEN_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*")
_CLOSE_FENCE_RE = re.compile(r"```\s*$")


class InvalidCompletionJSON(ValueError):
    """Raised when a completion cannot be reduced to a JSON object.

    ``text`` holds the cleaned text that was handed to the parser.
    """

    def __init__(self, text: str, reason: str = ""):
        self.text = text
        self.reason = reason
        super().__init__(f"Completion is not a JSON object: {reason}" if reason else "Completion is not a JSON object")


def _strip_code_fences(text: str) -> str:
    t = (text or "").strip()
    if t.startswith("```"):
        t = _OPEN_FENCE_RE.sub("", t, count=1)
        t = _CLOSE_FENCE_RE.sub("", t, count=1)
    return t.strip()


def _slice_outer_braces(text: str) -> Optional[str]:
    """
    Cut the text down to the span between the first '{' and the last '}'.

    Not a balanced-brace scan: prose before/after the object is dropped, and
    braces inside the object are kept because only the outermost positions count.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        return None
    return text[start:end + 1]


def clean_completion_text(raw_text: Optional[str], clean: bool = True) -> str:
    t = (raw_text or "").strip() or "{}"
    if not clean:
        return t

    t = _strip_code_fences(t)
    sliced = _slice_outer_braces(t)
    if sliced is None:
        raise InvalidCompletionJSON(t, "no JSON object found in completion")
    return sliced


def extract_completion_json(raw_text: Optional[str], clean: bool = True) -> Dict[str, Any]:
    cleaned = clean_completion_text(raw_text, clean=clean)

    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        raise InvalidCompletionJSON(cleaned, str(e)) from e

    if not isinstance(parsed, dict):
        raise InvalidCompletionJSON(cleaned, f"expected an object, got {type(parsed).__name__}")

    return parsed
