"""Text Utilities - Display names and labels"""
import re
from typing import Iterable, List, Optional

_WHITESPACE = re.compile(r"\s+")


def _first_token(text: str) -> str:
    tokens = _WHITESPACE.split(text.strip())
    return tokens[0] if tokens else ""


def extract_first_name(full_name: str) -> str:
    """
    Extract a first name from a display name

    Handles "Surname, Given" ordering by taking the first word after the
    first comma, otherwise takes the first word of the whole name.

    Examples:
        >>> extract_first_name("Smith, John")
        'John'
        >>> extract_first_name("John Smith")
        'John'
        >>> extract_first_name("")
        ''
    """
    if not full_name:
        return ""

    if "," in full_name:
        after_comma = full_name.split(",", 1)[1]
        return _first_token(after_comma)

    return _first_token(full_name)


def join_first_names(names: Iterable[str]) -> str:
    """
    Join names as "A", "A and B" or "A, B and C"

    Empty names are dropped before joining.
    """
    cleaned: List[str] = [name for name in names if name]

    if not cleaned:
        return ""
    if len(cleaned) == 1:
        return cleaned[0]

    return ", ".join(cleaned[:-1]) + " and " + cleaned[-1]


def format_stage_name(stage_name: str) -> str:
    """Format a snake_case stage name for display ("in_review" -> "In Review")"""
    return " ".join(
        word[:1].upper() + word[1:] for word in stage_name.split("_")
    )


def sender_display_name(
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None
) -> Optional[str]:
    """
    Name used to sign drafted notifications

    Falls back from first name to last name to the email username
    ("jane.doe@firm.co.uk" -> "Jane").
    """
    if first_name and first_name.strip():
        return first_name.strip()

    if last_name and last_name.strip():
        return extract_first_name(last_name)

    if email:
        name_part = re.split(r"[._-]", email.split("@")[0])[0]
        if name_part:
            return name_part[:1].upper() + name_part[1:].lower()

    return None
