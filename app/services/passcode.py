"""
Share passcode generation and format checks.

Passcodes are 12 characters from a 55-symbol alphabet that leaves out
glyphs people mistype when copying by hand (0/O, 1/I/l).
Acceptance is wider than generation: any 12-char alphanumeric string is
well-formed, so a transcription slip gets a uniform denial from the store
lookup instead of a format error.
"""
from __future__ import annotations

import re
import secrets

PASSCODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"
PASSCODE_LENGTH = 12

_PASSCODE_RE = re.compile(r"[A-Za-z0-9]{12}")


def generate_passcode() -> str:
    """
    Return a fresh passcode drawn from the OS CSPRNG.

    Each random byte is reduced modulo the alphabet size. If the entropy
    source is unavailable `secrets` raises and we let it propagate.
    """
    raw = secrets.token_bytes(PASSCODE_LENGTH)
    return "".join(PASSCODE_ALPHABET[b % len(PASSCODE_ALPHABET)] for b in raw)


def is_valid_format(candidate: object) -> bool:
    # fullmatch, not match + $: "$" would accept a trailing newline.
    if not isinstance(candidate, str):
        return False
    return _PASSCODE_RE.fullmatch(candidate) is not None
