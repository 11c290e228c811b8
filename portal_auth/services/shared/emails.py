"""E-mail identity helpers."""


def normalize_email(email: str) -> str:
    """Case-insensitive normal form of an identity."""
    return (email or "").strip().lower()


def has_domain(email: str, domain: str) -> bool:
    """Check the identity belongs to the given mail domain."""
    return normalize_email(email).endswith("@" + domain.lower().lstrip("@"))
