"""Shared validation functions for all entry points.

Pure functions with no FastAPI or Click dependencies.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

_MAX_USER_LENGTH = 128
_MAX_TITLE_LENGTH = 255
_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,99}$")


def _find_control_char(value: str, *, allow_newlines: bool = False) -> str | None:
    for ch in value:
        if allow_newlines and ch in "\n\r\t":
            continue
        if unicodedata.category(ch).startswith("C"):  # Cc (control) and Cf (format)
            return ch
    return None


def sanitize_user(value: Any) -> tuple[str, str | None]:
    """Validate and clean a user name.

    Returns (cleaned_user, None) on success or ("", error_message) on failure.
    """
    if not isinstance(value, str):
        return ("", "user must be a string")
    bad = _find_control_char(value)
    if bad is not None:
        return ("", f"user must not contain control characters (found U+{ord(bad):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "user must not be empty")
    if len(cleaned) > _MAX_USER_LENGTH:
        return ("", f"user must be at most {_MAX_USER_LENGTH} characters")
    return (cleaned, None)


def sanitize_title(value: Any) -> tuple[str, str | None]:
    """Validate a template title: non-blank, single line, bounded length."""
    if not isinstance(value, str):
        return ("", "Title must be a string")
    cleaned = value.strip()
    if not cleaned:
        return ("", "Title cannot be blank")
    bad = _find_control_char(cleaned)
    if bad is not None:
        return ("", f"Title must not contain control characters (found U+{ord(bad):04X})")
    if len(cleaned) > _MAX_TITLE_LENGTH:
        return ("", f"Title must be at most {_MAX_TITLE_LENGTH} characters")
    return (cleaned, None)


def validate_identifier(value: Any, kind: str) -> str:
    """Return *value* if it is a valid project/tracker identifier, else raise ValueError."""
    if not isinstance(value, str) or not _ID_PATTERN.match(value):
        msg = f"Invalid {kind} id {value!r}: must match ^[a-z0-9][a-z0-9_-]{{0,99}}$"
        raise ValueError(msg)
    return value


def normalize_title(title: str) -> str:
    """Dedup key for template titles: whitespace collapsed, case folded."""
    return " ".join(title.split()).casefold()
