"""
session/tokens.py -- Random token generation and constant-time comparison.

Session identifiers and CSRF tokens both come from generate_token():
secrets.token_hex(32) gives 32 random bytes as 64 hex characters, i.e. 256
bits of entropy. Brute-force is computationally infeasible.

constant_time_equals() wraps hmac.compare_digest. Its running time depends
only on the length of the inputs, never on the position of the first
mismatching byte, so response timing cannot be used to recover a secret one
byte at a time.
"""

import hmac
import secrets

TOKEN_BYTES = 32


def generate_token() -> str:
    """Return a new 64-character hex token."""
    return secrets.token_hex(TOKEN_BYTES)


def constant_time_equals(expected: str, candidate: str) -> bool:
    """Compare two strings without leaking the mismatch position.

    Both sides are encoded to UTF-8 first: compare_digest only accepts str
    arguments that are pure ASCII, and a candidate comes from a request header.
    """
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def short(token: str) -> str:
    """Return a log-safe prefix of a token or session identifier."""
    return f"{token[:8]}..." if token else "<none>"
