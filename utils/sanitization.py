# utils/sanitization.py
from typing import Any, Optional
import re

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]")
WHITESPACE = re.compile(r"\s+")


def clean_text(value: Optional[str]) -> str:
    """Drop control characters and collapse whitespace runs (arXiv titles wrap lines)."""
    if value is None:
        return ""
    return WHITESPACE.sub(" ", CONTROL_CHARS.sub("", value)).strip()


def is_nonempty_text(value: Optional[str]) -> bool:
    return bool(clean_text(value))


def coerce_str(value: Any) -> str:
    """
    Stringify an untrusted LLM field and trim it.
    None, dicts and lists collapse to an empty string.
    """
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()
