"""
Credential value generators.
"""

import secrets
import string

CHARSETS = {
    "alphanumeric": string.ascii_letters + string.digits,
    "alphanumeric_special": string.ascii_letters
    + string.digits
    + "!@#$%^&*()-_=+",
    "numeric": string.digits,
}


def generate_secure_password(
    length: int = 32, charset: str = "alphanumeric_special"
) -> str:
    """
    Generate a random password from a named character set.

    Unknown charset names fall back to alphanumeric.

    Raises:
        ValueError: If `length` is not positive.
    """
    if length <= 0:
        raise ValueError("Password length must be positive")
    alphabet = CHARSETS.get(charset, CHARSETS["alphanumeric"])
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_db_name(prefix: str = "db") -> str:
    """Return ``<prefix>_`` followed by eight random hex characters."""
    return f"{prefix}_{secrets.token_hex(4)}"
