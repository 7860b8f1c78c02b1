"""Password strength policy: at least 8 characters, one uppercase, one special."""

import re
from typing import List

from app.core.exceptions import WeakPassword

MIN_LENGTH = 8
MAX_LENGTH = 72  # bcrypt ignores anything past 72 bytes

_UPPERCASE_RE = re.compile(r"[A-Z]")
_SPECIAL_RE = re.compile(r"[^a-zA-Z0-9]")


def password_problems(password: str) -> List[str]:
    """Return the list of policy rules the password breaks (empty when valid)."""
    if not password:
        return ["password is required"]

    problems = []
    if len(password) < MIN_LENGTH:
        problems.append(f"must be at least {MIN_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_LENGTH:
        problems.append(f"must be at most {MAX_LENGTH} bytes")
    if not _UPPERCASE_RE.search(password):
        problems.append("must contain an uppercase letter")
    if not _SPECIAL_RE.search(password):
        problems.append("must contain a special character")
    return problems


def ensure_password_strength(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise WeakPassword(problems)
