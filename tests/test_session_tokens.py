"""
tests/test_session_tokens.py -- Token generation and constant-time comparison.
"""

from __future__ import annotations

import hmac
import re
from unittest.mock import patch

from session.tokens import constant_time_equals, generate_token, short


def test_generate_token_is_256_bit_hex():
    token = generate_token()
    assert re.fullmatch(r"[0-9a-f]{64}", token)


def test_generate_token_is_unique():
    tokens = {generate_token() for _ in range(200)}
    assert len(tokens) == 200


def test_constant_time_equals_matches_exact_value_only():
    token = generate_token()
    assert constant_time_equals(token, token)
    assert not constant_time_equals(token, token[:-1])
    assert not constant_time_equals(token, token + "0")
    assert not constant_time_equals(token, token.upper())


def test_constant_time_equals_delegates_to_compare_digest():
    """The comparison must go through hmac.compare_digest, not ==."""
    with patch("session.tokens.hmac.compare_digest", wraps=hmac.compare_digest) as spy:
        assert constant_time_equals("abc", "abc")
    spy.assert_called_once_with(b"abc", b"abc")


def test_constant_time_equals_accepts_non_ascii_candidate():
    """compare_digest rejects non-ASCII str; header values must not crash the check."""
    assert not constant_time_equals(generate_token(), "tökén")


def test_short_never_reveals_full_token():
    token = generate_token()
    assert short(token) == token[:8] + "..."
    assert short("") == "<none>"
