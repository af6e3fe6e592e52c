"""Pure input checks. Each returns the list of reasons the input fails; empty means valid."""

import re
import unicodedata
from enum import Enum
from typing import List, Optional

from meditrack.constants import Role

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PASSWORD_MIN_LENGTH = 8
# bcrypt ignores everything past 72 bytes
PASSWORD_MAX_BYTES = 72


class EmailIssue(str, Enum):
    EMPTY = "empty"
    MALFORMED = "malformed"


class PasswordIssue(str, Enum):
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    MISSING_UPPERCASE = "missing_uppercase"
    MISSING_DIGIT = "missing_digit"
    MISSING_SPECIAL = "missing_special"
    CONTROL_CHARACTER = "control_character"


def email_issues(email: Optional[str]) -> List[EmailIssue]:
    if not email:
        return [EmailIssue.EMPTY]
    if not EMAIL_RE.match(email):
        return [EmailIssue.MALFORMED]
    return []


def exceeds_bcrypt_limit(password: str) -> bool:
    return len(password.encode("utf-8")) > PASSWORD_MAX_BYTES


def password_issues(password: Optional[str]) -> List[PasswordIssue]:
    password = password or ""
    issues = []
    if len(password) < PASSWORD_MIN_LENGTH:
        issues.append(PasswordIssue.TOO_SHORT)
    if exceeds_bcrypt_limit(password):
        issues.append(PasswordIssue.TOO_LONG)
    if not any(c.isupper() for c in password):
        issues.append(PasswordIssue.MISSING_UPPERCASE)
    if not any(c.isdigit() for c in password):
        issues.append(PasswordIssue.MISSING_DIGIT)
    if not any(not c.isalnum() and not c.isspace() for c in password):
        issues.append(PasswordIssue.MISSING_SPECIAL)
    # NUL, tabs, newlines and the like; bcrypt refuses NUL outright
    if any(unicodedata.category(c) == "Cc" for c in password):
        issues.append(PasswordIssue.CONTROL_CHARACTER)
    return issues


def is_valid_email(email: Optional[str]) -> bool:
    return not email_issues(email)


def is_strong_password(password: Optional[str]) -> bool:
    return not password_issues(password)


def role_from_label(label: Optional[str]) -> Optional[Role]:
    """Exact match against the Role labels (Admin, Doctor, Nurse, Receptionist)."""
    try:
        return Role(label)
    except ValueError:
        return None
