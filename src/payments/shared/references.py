"""Client-side reference numbers for transactions and deliveries."""

import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits


def _suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_reference(prefix: str) -> str:
    """Return ``<prefix>-<epoch millis>-<6 upper alphanumerics>``."""
    return f"{prefix}-{int(time.time() * 1000)}-{_suffix()}"
