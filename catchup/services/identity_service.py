"""
Participant identity helpers: ids, 3-digit rejoin codes, name rules.

Codes are short and human-memorable so a participant can recover their
identity after a reload without credentials. The 100-999 namespace is far
larger than the 2-20 people a session is meant for.
"""

import random
import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from catchup.models.domain.errors import SessionFullError
from catchup.models.domain.session_domain import Participant, Session

USER_CODE_MIN = 100
USER_CODE_MAX = 999
USER_CODE_RANDOM_ATTEMPTS = 10

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
_VALID_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_'.]+$")
_USER_CODE_RE = re.compile(r"^\d{3}$")


@dataclass(frozen=True, slots=True)
class NameValidationResult:
    is_valid: bool
    error: str | None = None


def allocate_participant_id() -> str:
    return f"user_{uuid.uuid4().hex}"


def allocate_tag_id() -> str:
    return f"keyword_{uuid.uuid4().hex}"


def allocate_user_code(existing_codes: Iterable[str] = ()) -> str:
    """
    Return a 3-digit code not present in ``existing_codes``.

    Tries a few random picks first, then scans the whole range.

    Raises:
        SessionFullError: If all 900 codes are taken.
    """
    taken = set(existing_codes)

    for _ in range(USER_CODE_RANDOM_ATTEMPTS):
        code = str(random.randint(USER_CODE_MIN, USER_CODE_MAX))
        if code not in taken:
            return code

    for value in range(USER_CODE_MIN, USER_CODE_MAX + 1):
        code = str(value)
        if code not in taken:
            return code

    raise SessionFullError("Unable to generate unique user code - session is full")


def is_valid_user_code(code: str | None) -> bool:
    return bool(code) and bool(_USER_CODE_RE.match(code.strip()))


def is_name_taken(session: Session, name: str, exclude_id: str | None = None) -> bool:
    """Case-insensitive, trimmed comparison against every participant name."""
    return find_participant_by_name(session, name, exclude_id) is not None


def find_participant_by_name(
    session: Session, name: str, exclude_id: str | None = None
) -> Participant | None:
    normalized = name.strip().lower()
    for participant_id, participant in session.participants.items():
        if exclude_id and participant_id == exclude_id:
            continue
        if participant.name.strip().lower() == normalized:
            return participant
    return None


def validate_name(name: str | None) -> NameValidationResult:
    trimmed = (name or "").strip()

    if not trimmed:
        return NameValidationResult(is_valid=False, error="Name cannot be empty")

    if len(trimmed) < NAME_MIN_LENGTH:
        return NameValidationResult(
            is_valid=False, error=f"Name must be at least {NAME_MIN_LENGTH} characters long"
        )

    if len(trimmed) > NAME_MAX_LENGTH:
        return NameValidationResult(
            is_valid=False, error=f"Name must be at most {NAME_MAX_LENGTH} characters long"
        )

    if not _VALID_NAME_RE.match(trimmed):
        return NameValidationResult(is_valid=False, error="Name contains invalid characters")

    return NameValidationResult(is_valid=True)


def existing_user_codes(session: Session) -> set[str]:
    return {participant.code for participant in session.participants.values()}


def find_participant_by_code(session: Session, code: str) -> Participant | None:
    """Linear scan; sessions are small."""
    for participant in session.participants.values():
        if participant.code == code:
            return participant
    return None


def is_admin(session: Session, participant_id: str) -> bool:
    return session.admin_id == participant_id
