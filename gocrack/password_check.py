"""Password strength requirement."""

from __future__ import annotations

import unicodedata

__all__ = ["check_password_requirement"]

_MIN_LENGTH = 8


def check_password_requirement(password: str) -> bool:
    """Return True if the password has 8+ bytes and a letter, a digit and punctuation."""
    if len(password.encode("utf-8")) < _MIN_LENGTH:
        return False

    has_letter = has_punct = has_num = False
    for char in password:
        major = unicodedata.category(char)[0]
        if major == "N":
            has_num = True
        elif major == "L":
            has_letter = True
        elif major == "P":
            has_punct = True
        if has_letter and has_punct and has_num:
            return True
    return False