from __future__ import annotations

import secrets
import string

_SPECIALS = "!@#$%^&*()-_=+"
_CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits + _SPECIALS


def generate_random_password(length: int = 12) -> str:
    """Random password with at least one lower, upper, digit and special char."""
    if length < 4:
        raise ValueError("Password length must be at least 4.")

    characters = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIALS),
    ]
    characters.extend(secrets.choice(_CHARSET) for _ in range(length - 4))
    secrets.SystemRandom().shuffle(characters)
    return "".join(characters)
