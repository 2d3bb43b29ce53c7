# ==========================================================================
# 认证 API 模块
# --------------------------------------------------------------------------
# 本模块是 SEOMaster 的用户认证接口层，采用 JWT 无状态认证。
#
# 提供以下端点（统一挂载在 /api/auth 前缀下）：
#   1. POST /register         ：注册并发送邮箱验证码，返回验证会话令牌
#   2. POST /send-otp         ：重新发送邮箱验证码
#   3. POST /verify-otp       ：校验验证码，标记邮箱已验证
#   4. POST /login            ：登录，返回 7 天有效的令牌并写入 token Cookie
#   5. POST /logout           ：清除 token Cookie
#   6. POST /forgot-password  ：发送密码重置验证码
#   7. POST /verify-reset-otp ：校验重置验证码，返回重置令牌
#   8. POST /reset-password   ：使用重置令牌设置新密码
#   9. GET  /me               ：当前登录用户信息
#
# 业务逻辑委托给 AuthService，领域异常在本层统一转换为 HTTPException。
# ==========================================================================

"""Authentication API endpoints for SEOMaster."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.dependencies import TOKEN_COOKIE_NAME, CurrentUser
from settings import settings

from .exceptions import (
    AuthServiceError,
    EmailAlreadyExistsError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOtpError,
    InvalidSessionError,
    OtpDeliveryError,
    OtpRateLimitedError,
    UserNotFoundError,
)
from .schemas import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OtpVerifyRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    ResetTokenResponse,
    UserResponse,
    VerificationTokenResponse,
    VerifyOtpResponse,
)
from .service import AuthService

router = APIRouter(prefix="/auth", tags=["authentication"])

# 领域异常 -> HTTP 状态码
_STATUS_BY_ERROR: dict[type[AuthServiceError], int] = {
    EmailAlreadyExistsError: status.HTTP_409_CONFLICT,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    EmailAlreadyVerifiedError: status.HTTP_400_BAD_REQUEST,
    InvalidOtpError: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    InvalidSessionError: status.HTTP_401_UNAUTHORIZED,
    OtpRateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    OtpDeliveryError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _to_http(exc: AuthServiceError) -> HTTPException:
    """Translate an authentication failure into an HTTP error."""
    if isinstance(exc, OtpRateLimitedError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"Retry-After": str(exc.retry_after)},
        )
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=str(exc))


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Register a new account and mail a verification code.

    Raises:
        HTTPException: 409 if the email is already registered.
    """
    try:
        user, verification_token = await AuthService.register(
            session=session,
            first_name=request.first_name,
            last_name=request.last_name,
            company_name=request.company_name,
            email=request.email,
            password=request.password,
        )
    except AuthServiceError as e:
        raise _to_http(e)

    return {
        "message": "User registered successfully. Please check your email for verification code.",
        "user": UserResponse.model_validate(user),
        "verification_token": verification_token,
    }


@router.post("/send-otp", response_model=VerificationTokenResponse)
async def send_otp(
    request: EmailRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Re-send the email verification code."""
    try:
        token = await AuthService.resend_verification(session, request.email)
    except AuthServiceError as e:
        raise _to_http(e)
    return {"message": "OTP sent successfully to your email", "verification_token": token}


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    request: OtpVerifyRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Verify the email address with the mailed code."""
    try:
        user = await AuthService.verify_email(
            session,
            email=request.email,
            otp=request.otp,
            verification_token=request.verification_token,
        )
    except AuthServiceError as e:
        raise _to_http(e)
    return {"message": "Email verified successfully", "user": UserResponse.model_validate(user)}


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Authenticate and return a login token.

    The token is also set as an HTTP-only ``token`` cookie.

    Raises:
        HTTPException: 401 on bad credentials, 403 when the email has not
            been verified yet (``needsVerification`` in the detail).
    """
    try:
        user, token = await AuthService.login(session, request.email, request.password)
    except EmailNotVerifiedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": str(e),
                "needsVerification": True,
                "email": e.email,
            },
        )
    except AuthServiceError as e:
        raise _to_http(e)

    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=settings.jwt_access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return {"message": "Login successful", "token": token, "user": UserResponse.model_validate(user)}


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> dict:
    """Clear the token cookie. Bearer tokens are discarded client-side."""
    response.delete_cookie(TOKEN_COOKIE_NAME)
    return {"message": "Logged out"}


@router.post("/forgot-password", response_model=VerificationTokenResponse)
async def forgot_password(
    request: EmailRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Mail a password reset code."""
    try:
        token = await AuthService.forgot_password(session, request.email)
    except AuthServiceError as e:
        raise _to_http(e)
    return {
        "message": "Password reset code sent successfully to your email",
        "verification_token": token,
    }


@router.post("/verify-reset-otp", response_model=ResetTokenResponse)
async def verify_reset_otp(
    request: OtpVerifyRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Verify a password reset code and return a reset token."""
    try:
        reset_token = await AuthService.verify_reset_otp(
            session,
            email=request.email,
            otp=request.otp,
            verification_token=request.verification_token,
        )
    except AuthServiceError as e:
        raise _to_http(e)
    return {"message": "Password reset OTP verified successfully", "reset_token": reset_token}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Set a new password with a reset token."""
    try:
        await AuthService.reset_password(
            session,
            email=request.email,
            new_password=request.password,
            reset_token=request.reset_token,
        )
    except AuthServiceError as e:
        raise _to_http(e)
    return {"message": "Password reset successfully"}


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser) -> UserResponse:
    """Return the current user's profile."""
    return UserResponse.model_validate(user)
