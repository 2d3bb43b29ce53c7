# =============================================================================
# FastAPI 依赖注入模块
# =============================================================================
# 本模块提供 SEOMaster 的认证依赖：
#   1. 从请求中提取 JWT（优先 Authorization: Bearer，其次 Cookie "token"）
#   2. 校验令牌类型为 access，并解析出显式的认证上下文 AuthContext
#   3. 校验用户仍然存在且处于激活状态
#
# 设计说明：
#   - 会话信息以 AuthContext(user_id, email) 的形式显式传递给业务层，
#     业务层不读取任何全局状态
#   - 所有认证失败统一返回 401，并附带 WWW-Authenticate 头
# =============================================================================

"""FastAPI dependencies for SEOMaster.

Provides authentication dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.models.user import User
from core.security import TOKEN_TYPE_ACCESS, decode_token

# auto_error=False：无 Bearer 头时返回 None，以便回退到 Cookie
http_bearer = HTTPBearer(auto_error=False)

TOKEN_COOKIE_NAME = "token"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller identity passed explicitly to services."""

    user_id: str
    email: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Return the raw token from the Bearer header or the ``token`` cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE_NAME) or None


async def get_current_user(
    request: Request,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(http_bearer)
    ] = None,
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the current authenticated user.

    Raises:
        HTTPException: 401 if the request is unauthenticated, the token is
            invalid or not an access token, or the user no longer exists;
            403 if the account is disabled.
    """
    token = extract_token(request, credentials)
    if not token:
        raise _unauthorized("Authentication required")

    payload = decode_token(token, expected_type=TOKEN_TYPE_ACCESS)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    result = await session.execute(select(User).where(User.id == str(user_id)))
    user = result.scalar_one_or_none()
    if not user:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )
    return user


async def get_auth_context(
    user: User = Depends(get_current_user),
) -> AuthContext:
    """Reduce the authenticated user to the identity services need."""
    return AuthContext(user_id=user.id, email=user.email)


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
