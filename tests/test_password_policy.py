"""Tests for the password strength policy."""

import pytest

from portal_auth.services.password_policy import PasswordStrength, validate_password


class TestValidatePassword:
    """Requirements and strength levels."""

    def test_strong_password(self):
        check = validate_password("Nexo-Pass-2025")

        assert check.is_valid is True
        assert check.errors == []
        assert check.strength == PasswordStrength.STRONG

    def test_very_strong_password(self):
        check = validate_password("Nexo-Strong-Pass-2025!")

        assert check.strength == PasswordStrength.VERY_STRONG

    @pytest.mark.parametrize(
        "password,requirement",
        [
            ("Short-1a", "min_length"),
            ("nexo-pass-2025", "has_uppercase"),
            ("NEXO-PASS-2025", "has_lowercase"),
            ("Nexo-Pass-Word", "has_number"),
            ("NexoPass20255", "has_special_char"),
        ],
    )
    def test_missing_requirement(self, password, requirement):
        check = validate_password(password)

        assert check.is_valid is False
        assert check.requirements[requirement] is False

    def test_weak_password(self):
        check = validate_password("abc")

        assert check.strength == PasswordStrength.WEAK
        assert len(check.errors) == 4

    def test_medium_password(self):
        check = validate_password("abcdefghijk1")

        assert check.strength == PasswordStrength.MEDIUM

    def test_common_password_rejected(self):
        check = validate_password("password1234")

        assert check.is_valid is False
        assert "not a common password" in check.errors
