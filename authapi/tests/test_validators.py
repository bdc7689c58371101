"""
Tests for username and password policy checks.
"""
import pytest

from authapi.auth.validators import ValidationResult, validate_password, validate_username


@pytest.mark.parametrize("username", ["abc", "newuser", "user_123", "A" * 20, "___"])
def test_valid_usernames(username):
    assert validate_username(username) == ValidationResult(valid=True)


@pytest.mark.parametrize("username,reason", [
    ("ab", "Username must be at least 3 characters long"),
    ("", "Username must be at least 3 characters long"),
    ("a" * 21, "Username must be no more than 20 characters long"),
    ("new-user", "Username can only contain letters, numbers, and underscores"),
    ("new user", "Username can only contain letters, numbers, and underscores"),
    ("user\n", "Username can only contain letters, numbers, and underscores"),
    ("usér", "Username can only contain letters, numbers, and underscores"),
])
def test_invalid_usernames(username, reason):
    result = validate_username(username)
    assert not result.valid
    assert result.reason == reason


def test_username_length_checked_before_charset():
    assert validate_username("a!").reason == "Username must be at least 3 characters long"
    assert validate_username("!" * 25).reason == "Username must be no more than 20 characters long"


@pytest.mark.parametrize("password", ["SecurePass123!", "Aa1!aaaa", 'Xy9"long_enough'])
def test_valid_passwords(password):
    assert validate_password(password).valid


@pytest.mark.parametrize("password,reason", [
    ("Aa1!", "Password must be at least 8 characters long"),
    ("securepass123!", "Password must contain at least one uppercase letter"),
    ("SECUREPASS123!", "Password must contain at least one lowercase letter"),
    ("SecurePass!!!", "Password must contain at least one number"),
    ("SecurePass123", "Password must contain at least one special character"),
    ("SecurePass123_", "Password must contain at least one special character"),
])
def test_invalid_passwords(password, reason):
    result = validate_password(password)
    assert not result.valid
    assert result.reason == reason


def test_password_rules_reported_in_order():
    """Only the first failing rule is reported."""
    assert validate_password("x").reason == "Password must be at least 8 characters long"
    assert validate_password("xxxxxxxx").reason == "Password must contain at least one uppercase letter"
    assert validate_password("XXXXXXXX").reason == "Password must contain at least one lowercase letter"
    assert validate_password("Xxxxxxxx").reason == "Password must contain at least one number"
    assert validate_password("Xxxxxxx1").reason == "Password must contain at least one special character"
