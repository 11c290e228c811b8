"""Password strength policy for new accounts."""

import re
from dataclasses import dataclass, field

MIN_LENGTH = 12
VERY_STRONG_LENGTH = 16

SPECIAL_CHARACTERS = r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\;'`~]"

COMMON_PASSWORDS = frozenset(
    {
        "password123",
        "admin1234",
        "qwerty123",
        "12345678901",
        "contraseña123",
        "password1234",
        "admin12345",
        "avtech123",
        "nexoav123",
        "nexoav1234",
        "avtech1234",
    }
)


class PasswordStrength:
    """Strength labels."""

    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"
    VERY_STRONG = "very-strong"


@dataclass
class PasswordCheck:
    """Result of checking a password against the policy."""

    is_valid: bool
    strength: str
    errors: list[str] = field(default_factory=list)
    requirements: dict[str, bool] = field(default_factory=dict)


def validate_password(password: str) -> PasswordCheck:
    """Check length, character classes and the common-password list."""
    requirements = {
        "min_length": len(password) >= MIN_LENGTH,
        "has_uppercase": bool(re.search(r"[A-Z]", password)),
        "has_lowercase": bool(re.search(r"[a-z]", password)),
        "has_number": bool(re.search(r"\d", password)),
        "has_special_char": bool(re.search(SPECIAL_CHARACTERS, password)),
    }

    errors = []
    if not requirements["min_length"]:
        errors.append(f"at least {MIN_LENGTH} characters")
    if not requirements["has_uppercase"]:
        errors.append("one uppercase letter")
    if not requirements["has_lowercase"]:
        errors.append("one lowercase letter")
    if not requirements["has_number"]:
        errors.append("one number")
    if not requirements["has_special_char"]:
        errors.append("one special character (!@#$%...)")
    if password.lower() in COMMON_PASSWORDS:
        errors.append("not a common password")

    met = sum(requirements.values())
    if met >= 5 and len(password) >= VERY_STRONG_LENGTH:
        strength = PasswordStrength.VERY_STRONG
    elif met >= 5:
        strength = PasswordStrength.STRONG
    elif met >= 3:
        strength = PasswordStrength.MEDIUM
    else:
        strength = PasswordStrength.WEAK

    return PasswordCheck(
        is_valid=not errors,
        strength=strength,
        errors=errors,
        requirements=requirements,
    )
