"""
Username and password policy checks.

Both validators report the first rule that fails, in a fixed order, because
callers show that message to the user.
"""
import re
from dataclasses import dataclass
from typing import Optional

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 8

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)


def validate_username(username: str) -> ValidationResult:
    """Check length (min, then max) and then the allowed character set."""
    if len(username) < USERNAME_MIN_LENGTH:
        return ValidationResult.fail(
            f"Username must be at least {USERNAME_MIN_LENGTH} characters long"
        )
    if len(username) > USERNAME_MAX_LENGTH:
        return ValidationResult.fail(
            f"Username must be no more than {USERNAME_MAX_LENGTH} characters long"
        )
    if not USERNAME_PATTERN.fullmatch(username):
        return ValidationResult.fail(
            "Username can only contain letters, numbers, and underscores"
        )
    return ValidationResult.ok()


def validate_password(password: str) -> ValidationResult:
    """Check length, uppercase, lowercase, digit and symbol, in that order."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult.fail(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if not _UPPER.search(password):
        return ValidationResult.fail("Password must contain at least one uppercase letter")
    if not _LOWER.search(password):
        return ValidationResult.fail("Password must contain at least one lowercase letter")
    if not _DIGIT.search(password):
        return ValidationResult.fail("Password must contain at least one number")
    if not _SYMBOL.search(password):
        return ValidationResult.fail("Password must contain at least one special character")
    return ValidationResult.ok()
