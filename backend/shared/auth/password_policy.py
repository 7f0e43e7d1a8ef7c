"""Password strength policy applied before an account is created.

``validate_password`` returns every rule the candidate breaks, in a fixed
order, so a registration form can show them all at once. ``score_password``
counts the character-class and length rules a candidate satisfies and feeds
the strength meter. Both are pure functions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

PASSWORD_MIN_LENGTH = 8
MAX_SCORE = 4

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?~`"

_UPPERCASE_RE = re.compile(r"[A-Z]")
_LOWERCASE_RE = re.compile(r"[a-z]")
_SPECIAL_RE = re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]")

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "123456",
        "123456789",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
        "iloveyou",
        "princess",
        "dragon",
        "rockyou",
        "654321",
        "michael",
        "mustang",
        "master",
        "sunshine",
        "ashley",
        "bailey",
        "passw0rd",
        "shadow",
        "123123",
        "superman",
        "qazwsx",
        "football",
    },
)

CONTAINS_SPACES = "Password cannot contain spaces"
TOO_SHORT = f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
MISSING_UPPERCASE = "Password must contain at least one uppercase letter (A-Z)"
MISSING_LOWERCASE = "Password must contain at least one lowercase letter (a-z)"
MISSING_SPECIAL = "Password must contain at least one special character (!@#$%^&* etc.)"
TOO_COMMON = "Password is too common, please choose a stronger password"


@dataclass(frozen=True)
class PasswordValidation:
    valid: bool
    violations: tuple[str, ...]


def _has_whitespace(candidate: str) -> bool:
    return any(ch.isspace() for ch in candidate)


def _class_rules(candidate: str) -> list[tuple[bool, str]]:
    """(passed, violation) for the length and character-class rules, in report order."""
    return [
        (len(candidate) >= PASSWORD_MIN_LENGTH, TOO_SHORT),
        (_UPPERCASE_RE.search(candidate) is not None, MISSING_UPPERCASE),
        (_LOWERCASE_RE.search(candidate) is not None, MISSING_LOWERCASE),
        (_SPECIAL_RE.search(candidate) is not None, MISSING_SPECIAL),
    ]


def validate_password(candidate: str) -> PasswordValidation:
    """Check a candidate against the policy.

    Whitespace rejects immediately with a single violation. Otherwise every
    failing rule is reported, and a deny-list match is appended last.
    """
    if _has_whitespace(candidate):
        return PasswordValidation(valid=False, violations=(CONTAINS_SPACES,))

    violations = [message for passed, message in _class_rules(candidate) if not passed]
    if candidate.lower() in COMMON_PASSWORDS:
        violations.append(TOO_COMMON)

    return PasswordValidation(valid=not violations, violations=tuple(violations))


def score_password(candidate: str) -> int:
    """Return 0-4: one point per satisfied length/character-class rule.

    Whitespace scores 0. The common-password list does not affect the score.
    """
    if _has_whitespace(candidate):
        return 0
    return sum(1 for passed, _ in _class_rules(candidate) if passed)
