"""
Session PIN and address derivation.

A host publishes itself on the transport under an address derived from its
6-digit PIN. The prefix namespaces session addresses so they never collide
with addresses other applications register on the same transport. The guest
re-derives the same address from the PIN it was given; no decode step exists.
"""

import re
import secrets

ADDRESS_PREFIX = "pinpad-"

PIN_LENGTH = 6
_PIN_RE = re.compile(r"[0-9]{6}")


def generate_session_code() -> str:
    """Generate a fresh 6-digit PIN (100000-999999, no leading zero)."""
    return str(100000 + secrets.randbelow(900000))


def is_valid_session_code(code) -> bool:
    """True if ``code`` is a string of exactly six ASCII digits."""
    return isinstance(code, str) and _PIN_RE.fullmatch(code) is not None


def derive_host_address(code: str) -> str:
    """Map a PIN to the transport address the host listens on."""
    return f"{ADDRESS_PREFIX}{code}"
