"""
Domain validators.

Raise-on-error helpers shared by services. They operate only on the data
passed in; anything that needs the database belongs in a repository or the
validation module.

Usage
-----
    from src.modules.shared.validators import validate_roblox_username

    validate_roblox_username("Counsel_01")      # OK
    validate_roblox_username("_bad")            # raises ValidationError
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError

QUESTION_TYPES = ("short", "paragraph", "number", "choice")

ROBLOX_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")

ROBLOX_FORMAT_MESSAGE = "Username must be 3-20 characters and contain only letters, numbers, and underscores"
ROBLOX_UNDERSCORE_MESSAGE = "Username cannot start or end with an underscore"


def roblox_username_error(username: Optional[str]) -> Optional[str]:
    """Return the first problem with ``username``, or ``None`` if it is valid."""
    if not username or not ROBLOX_USERNAME_PATTERN.match(username):
        return ROBLOX_FORMAT_MESSAGE
    if username.startswith("_") or username.endswith("_"):
        return ROBLOX_UNDERSCORE_MESSAGE
    return None


def validate_roblox_username(username: Optional[str]) -> None:
    """
    Raises:
        ValidationError: If the username breaks Roblox naming rules
    """
    error = roblox_username_error(username)
    if error:
        raise ValidationError("roblox_username", error)


def validate_length(value: Optional[str], name: str, min_length: int, max_length: int) -> None:
    """
    Raises:
        ValidationError: If ``value`` is missing or its stripped length is out of range
    """
    length = len((value or "").strip())
    if length < min_length or length > max_length:
        raise ValidationError(name, f"{name} must be between {min_length} and {max_length} characters")


def validate_range(value: int, name: str, min_value: int, max_value: int) -> None:
    if not (min_value <= value <= max_value):
        raise ValidationError(name, f"{name} must be between {min_value} and {max_value}, got {value}")


def validate_job_questions(questions: List[Dict[str, Any]]) -> None:
    """
    Structural checks for application questions.

    - ids must be unique
    - choice questions need at least one choice
    - min_value must be lower than max_value
    - max_length must be positive

    Raises:
        ValidationError: On the first invalid question
    """
    seen: set[str] = set()
    for question in questions:
        question_id = str(question.get("id") or "")
        if not question_id:
            raise ValidationError("questions", "Every question needs an id")
        if question_id in seen:
            raise ValidationError("questions", f"Duplicate question id: {question_id}")
        seen.add(question_id)

        if not str(question.get("question") or "").strip():
            raise ValidationError("questions", f"Question {question_id} has no text")

        if question.get("type") not in QUESTION_TYPES:
            raise ValidationError("questions", f"Invalid question type: {question.get('type')}")

        if question.get("type") == "choice" and not question.get("choices"):
            raise ValidationError("questions", f"Choice question {question_id} must define choices")

        min_value = question.get("min_value")
        max_value = question.get("max_value")
        if min_value is not None and max_value is not None and min_value >= max_value:
            raise ValidationError("questions", f"Question {question_id}: min_value must be less than max_value")

        max_length = question.get("max_length")
        if max_length is not None and max_length <= 0:
            raise ValidationError("questions", f"Question {question_id}: max_length must be positive")
