"""Tests for core/security.py — password hashing and JWT tokens.

安全工具（密码与 JWT）相关测试。
"""

from __future__ import annotations

from datetime import timedelta


class TestPasswordHashing:
    """Verify bcrypt password hashing and verification.

    验证密码哈希与校验逻辑。
    """

    def test_hash_is_bcrypt_format(self):
        """Verify hash string uses bcrypt format.

        验证哈希字符串使用 bcrypt 前缀格式。
        """
        from core.security import hash_password

        h = hash_password("test-password")
        # bcrypt hashes start with $2b$ (or $2a$)
        assert h.startswith("$2")

    def test_same_input_is_salted(self):
        from core.security import hash_password

        assert hash_password("same") != hash_password("same")

    def test_verify_correct_and_wrong_password(self):
        """Verify matching and non-matching passwords.

        验证正确密码通过校验，错误密码不通过。
        """
        from core.security import hash_password, verify_password

        h = hash_password("correct horse")
        assert verify_password("correct horse", h) is True
        assert verify_password("battery staple", h) is False

    def test_verify_against_malformed_hash(self):
        """A corrupt stored hash never authenticates."""
        from core.security import verify_password

        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_long_password_truncated_to_72_bytes(self):
        from core.security import hash_password, verify_password

        base = "a" * 72
        h = hash_password(base + "suffix-one")
        assert verify_password(base + "suffix-two", h) is True


class TestTokens:
    """Verify JWT creation, decoding and type enforcement.

    验证三种令牌（登录、验证会话、重置密码）的签发与解析。
    """

    def test_access_token_round_trip_claims(self):
        from core.security import TOKEN_TYPE_ACCESS, create_access_token, decode_token

        token = create_access_token("user-123", "ada@example.com")
        payload = decode_token(token)

        assert payload["sub"] == "user-123"
        assert payload["email"] == "ada@example.com"
        assert payload["type"] == TOKEN_TYPE_ACCESS
        assert "exp" in payload

    def test_verification_token_has_no_subject(self):
        from core.security import TOKEN_TYPE_VERIFICATION, create_verification_token, decode_token

        payload = decode_token(create_verification_token("ada@example.com"))

        assert payload["email"] == "ada@example.com"
        assert payload["type"] == TOKEN_TYPE_VERIFICATION
        assert "sub" not in payload

    def test_reset_token_carries_subject(self):
        from core.security import TOKEN_TYPE_RESET, create_reset_token, decode_token

        payload = decode_token(create_reset_token("user-9", "ada@example.com"), expected_type=TOKEN_TYPE_RESET)

        assert payload["sub"] == "user-9"

    def test_verification_token_rejected_as_access(self):
        """A token of one type is never accepted where another is expected.

        验证令牌类型不匹配时返回 None。
        """
        from core.security import TOKEN_TYPE_ACCESS, create_verification_token, decode_token

        token = create_verification_token("a@b.co")
        assert decode_token(token, expected_type=TOKEN_TYPE_ACCESS) is None

    def test_access_token_rejected_as_reset(self):
        from core.security import TOKEN_TYPE_RESET, create_access_token, decode_token

        token = create_access_token("1", "a@b.co")
        assert decode_token(token, expected_type=TOKEN_TYPE_RESET) is None

    def test_expired_token_is_rejected(self):
        from core.security import create_access_token, decode_token

        token = create_access_token("1", "a@b.co", expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_foreign_signature_is_rejected(self):
        from jose import jwt

        from core.security import decode_token
        from settings import settings

        forged = jwt.encode(
            {"sub": "1", "email": "a@b.co", "type": "access"},
            settings.jwt_secret_key + "-forged",
            algorithm=settings.jwt_algorithm,
        )
        assert decode_token(forged) is None

    def test_garbage_is_rejected(self):
        from core.security import decode_token

        assert decode_token("not.a.jwt") is None
