"""
tests/test_tokens.py -- Unit tests for password hashing and the signed session cookie.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.tokens import (
    decode_session_cookie,
    encode_session_cookie,
    generate_session_token,
    hash_password,
    verify_password,
)


class TestPasswords:
    def test_hash_round_trip(self) -> None:
        hashed = hash_password("Password1")
        assert hashed != "Password1"
        assert verify_password("Password1", hashed)
        assert not verify_password("Password2", hashed)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("Password1", "not-a-bcrypt-hash") is False


class TestSessionCookie:
    def test_round_trip(self) -> None:
        token = generate_session_token()
        value = encode_session_cookie(token, "user-1", datetime.now(timezone.utc) + timedelta(hours=1))
        assert decode_session_cookie(value) == token

    def test_expired_value_rejected(self) -> None:
        value = encode_session_cookie("tok", "user-1", datetime.now(timezone.utc) - timedelta(seconds=5))
        assert decode_session_cookie(value) is None

    def test_foreign_signature_rejected(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
        forged = jwt.encode({"sid": "tok", "sub": "user-1", "exp": exp}, "x" * 32, algorithm="HS256")
        assert decode_session_cookie(forged) is None

    def test_tokens_are_unique(self) -> None:
        assert len({generate_session_token() for _ in range(50)}) == 50
