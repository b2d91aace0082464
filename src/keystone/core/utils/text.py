"""Text processing utilities."""

import secrets
import string


ALPHANUMERIC = string.ascii_letters + string.digits


def random_alphanumeric(length: int) -> str:
    """Cryptographically random string of ASCII letters and digits."""
    return "".join(secrets.choice(ALPHANUMERIC) for _ in range(length))
