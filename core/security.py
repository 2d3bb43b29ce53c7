# =============================================================================
# 安全工具模块
# =============================================================================
# 本模块提供 SEOMaster 的核心安全功能：
#   1. 密码哈希与验证（bcrypt）
#   2. JWT 令牌的签发与解析
#
# 令牌类型（payload 中的 "type" 字段）：
#   - access:       登录令牌，有效期 7 天，携带 sub（用户 ID）与 email
#   - verification: 邮箱验证 / 找回密码流程中的短期令牌，仅绑定 email
#   - reset:        验证重置 OTP 后签发，用于提交新密码
# 通过 type 字段区分，防止一种令牌被当作另一种使用。
# =============================================================================

"""Security utilities for SEOMaster.

Provides password hashing and JWT token management.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_VERIFICATION = "verification"
TOKEN_TYPE_RESET = "reset"


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt.

    The password is truncated to 72 bytes to match bcrypt's input limit.

    Example:
        >>> hashed = hash_password("MySecret123")
        >>> hashed.startswith("$2")
        True
    """
    password_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # 存储的哈希格式无效
        return False


def _encode(payload: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    from settings import settings

    to_encode = payload.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    })
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed login token for ``user_id``.

    Args:
        user_id: Subject of the token (stored as ``sub``).
        email: The user's email address.
        expires_delta: Optional override for token lifetime.

    Returns:
        str: Encoded JWT access token.
    """
    from settings import settings

    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode({"sub": str(user_id), "email": email}, TOKEN_TYPE_ACCESS, lifetime)


def create_verification_token(email: str, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived token binding an OTP flow to ``email``."""
    from settings import settings

    lifetime = expires_delta or timedelta(minutes=settings.jwt_verification_token_expire_minutes)
    return _encode({"email": email}, TOKEN_TYPE_VERIFICATION, lifetime)


def create_reset_token(
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a token that authorizes a single password reset."""
    from settings import settings

    lifetime = expires_delta or timedelta(minutes=settings.jwt_reset_token_expire_minutes)
    return _encode({"sub": str(user_id), "email": email}, TOKEN_TYPE_RESET, lifetime)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any] | None:
    """Decode and verify a JWT token.

    Validates signature, algorithm and expiration. Returns ``None`` on any
    JWT error, and also when ``expected_type`` is given and the token's
    ``type`` claim differs.

    Args:
        token: Encoded JWT string.
        expected_type: Required value of the ``type`` claim (optional).

    Returns:
        dict[str, Any] | None: Decoded payload if valid, otherwise ``None``.
    """
    from settings import settings

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if expected_type is not None and payload.get("type") != expected_type:
        return None
    return payload
