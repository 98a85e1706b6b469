"""
Tag format validation and normalization.

Tags are terse, hyphen-joined proposals:
- Letters only (a-z, A-Z)
- Max 2 hyphens (3 logical words)
- No spaces
- Examples: "coffee", "saturday-morning", "central-park-meetup"

``normalize_tag`` is total and idempotent, so duplicate detection is a plain
equality check on normalized forms.
"""

import re
from dataclasses import dataclass

MAX_TAG_SEGMENTS = 3

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^a-zA-Z-]")
_HYPHEN_RUN_RE = re.compile(r"-+")
_EDGE_HYPHENS_RE = re.compile(r"^-+|-+$")
_VALID_TAG_RE = re.compile(r"^[a-zA-Z]+(-[a-zA-Z]+)*$")

VALID_TAG_EXAMPLES = [
    "coffee",
    "saturday-morning",
    "central-park",
    "pizza-and-beer",
    "weekend-brunch",
]

INVALID_TAG_EXAMPLES = [
    {"invalid": "coffee shop", "valid": "coffee-shop"},
    {"invalid": "saturday morning coffee", "valid": "saturday-morning-coffee"},
    {"invalid": "central park in manhattan", "valid": "central-park-in"},
    {"invalid": "pizza & beer", "valid": "pizza-beer"},
    {"invalid": "--weekend--", "valid": "weekend"},
]


@dataclass(frozen=True, slots=True)
class TagValidationResult:
    is_valid: bool
    error: str | None = None
    suggestion: str | None = None


def validate_tag(text: str | None) -> TagValidationResult:
    """
    Validate raw tag text against the canonical format.

    Rules are checked in order and the first failure wins; each failure
    carries a suggested correction where one can be derived.
    """
    if not text or not text.strip():
        return TagValidationResult(is_valid=False, error="Tag cannot be empty")

    trimmed = text.strip()

    if _WHITESPACE_RE.search(trimmed):
        return TagValidationResult(
            is_valid=False,
            error="Tags cannot contain spaces",
            suggestion=_WHITESPACE_RE.sub("-", trimmed).lower(),
        )

    if trimmed.count("-") > MAX_TAG_SEGMENTS - 1:
        return TagValidationResult(
            is_valid=False,
            error="Tags can have maximum 2 hyphens (3 words)",
            suggestion="-".join(trimmed.split("-")[:MAX_TAG_SEGMENTS]).lower(),
        )

    if _DISALLOWED_RE.search(trimmed):
        return TagValidationResult(
            is_valid=False,
            error="Tags can only contain letters and hyphens",
            suggestion=_DISALLOWED_RE.sub("", trimmed).lower() or None,
        )

    if "--" in trimmed:
        return TagValidationResult(
            is_valid=False,
            error="Tags cannot have consecutive hyphens",
            suggestion=_HYPHEN_RUN_RE.sub("-", trimmed).lower(),
        )

    if trimmed.startswith("-") or trimmed.endswith("-"):
        return TagValidationResult(
            is_valid=False,
            error="Tags cannot start or end with hyphens",
            suggestion=_EDGE_HYPHENS_RE.sub("", trimmed).lower() or None,
        )

    # Anything left over (e.g. a lone "-") fails the full pattern
    if not _VALID_TAG_RE.match(trimmed):
        return TagValidationResult(is_valid=False, error="Invalid tag format")

    return TagValidationResult(is_valid=True)


def normalize_tag(text: str) -> str:
    """Canonical form of any string; also the tag dedup key."""
    normalized = text.strip().lower()
    normalized = _WHITESPACE_RE.sub("-", normalized)
    normalized = _DISALLOWED_RE.sub("", normalized)
    normalized = _HYPHEN_RUN_RE.sub("-", normalized)
    normalized = _EDGE_HYPHENS_RE.sub("", normalized)
    return "-".join(normalized.split("-")[:MAX_TAG_SEGMENTS])


def tag_error_message(result: TagValidationResult) -> str:
    """Human-readable message for a failed validation."""
    if result.is_valid:
        return ""

    message = result.error or "Invalid tag format"
    if result.suggestion:
        message += f'. Try: "{result.suggestion}"'
    return message
