"""
Share codes for the store.

Six characters from an alphabet without 0, O, 1 and I, so a code read aloud
or copied by hand survives transcription. Lookups are case-insensitive.
"""

import secrets

STORE_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
STORE_CODE_LENGTH = 6


def generate_store_code() -> str:
    return ''.join(secrets.choice(STORE_CODE_ALPHABET) for _ in range(STORE_CODE_LENGTH))


def normalize_store_code(code: str) -> str:
    return code.strip().upper()
