# ==========================================================================
# 认证服务模块
# --------------------------------------------------------------------------
# 本模块是 SEOMaster 认证功能的核心业务逻辑层，包括：
#   1. 用户注册：邮箱唯一性校验、密码哈希、签发邮箱验证码
#   2. 重新发送验证码：仅对未验证账户
#   3. 邮箱验证：校验验证会话令牌 + OTP，标记账户已验证
#   4. 用户登录：凭据校验、验证状态检查、签发 7 天登录令牌
#   5. 找回密码：签发重置验证码、校验后签发重置令牌、设置新密码
#
# 设计决策：
#   - AuthService 为无状态服务类，全部使用 staticmethod，依赖通过参数传入
#   - 业务失败抛出 apps.auth.exceptions 中的领域异常，由 api.py 转换为 HTTP 响应
#   - 只 flush 不 commit，事务边界由调用方（请求会话）控制
# ==========================================================================

"""Authentication service for SEOMaster."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.auth.exceptions import (
    EmailAlreadyExistsError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOtpError,
    InvalidSessionError,
    OtpDeliveryError,
    UserNotFoundError,
)
from apps.auth.otp_service import (
    OTP_PURPOSE_EMAIL_VERIFICATION,
    OTP_PURPOSE_PASSWORD_RESET,
    OtpService,
)
from core.models.user import User
from core.security import (
    TOKEN_TYPE_RESET,
    TOKEN_TYPE_VERIFICATION,
    create_access_token,
    create_reset_token,
    create_verification_token,
    decode_token,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for authentication operations."""

    @staticmethod
    async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
        result = await session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    def _check_session_token(token: str, email: str, token_type: str) -> dict:
        """Decode a flow token and ensure it is bound to ``email``.

        Raises:
            InvalidSessionError: If the token is invalid, expired, of the
                wrong type, or issued for another email.
        """
        payload = decode_token(token, expected_type=token_type)
        if not payload or payload.get("email") != email.lower():
            raise InvalidSessionError("Invalid or expired verification session")
        return payload

    # ------------------------------------------------------------------
    # 注册与邮箱验证
    # ------------------------------------------------------------------
    @staticmethod
    async def register(
        session: AsyncSession,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        company_name: str | None = None,
    ) -> tuple[User, str]:
        """Register a new, unverified user and mail a verification code.

        A failed email delivery does not undo the registration; the user can
        request a new code through ``resend_verification``.

        Returns:
            tuple[User, str]: The created user and a verification token.

        Raises:
            EmailAlreadyExistsError: If the email is already registered.
        """
        email = email.lower()
        if await AuthService.get_user_by_email(session, email):
            raise EmailAlreadyExistsError("Email already exists")

        user = User(
            first_name=first_name,
            last_name=last_name,
            company_name=company_name or None,
            email=email,
            is_verified=False,
            is_active=True,
        )
        user.set_password(password)
        session.add(user)
        await session.flush()
        await session.refresh(user)

        otp = await OtpService.issue(session, email, OTP_PURPOSE_EMAIL_VERIFICATION)
        sent, _ = await OtpService.deliver(otp, user.first_name)
        if not sent:
            logger.warning(f"User {email} registered but verification email was not sent")

        logger.info(f"User registered: {email}")
        return user, create_verification_token(email)

    @staticmethod
    async def resend_verification(session: AsyncSession, email: str) -> str:
        """Issue a new verification code for an unverified account.

        Returns:
            str: A new verification token.

        Raises:
            UserNotFoundError: Unknown email.
            EmailAlreadyVerifiedError: Account already verified.
            OtpRateLimitedError: Requested again within the resend interval.
            OtpDeliveryError: The email could not be sent.
        """
        user = await AuthService.get_user_by_email(session, email)
        if not user:
            raise UserNotFoundError("User not found with this email address")
        if user.is_verified:
            raise EmailAlreadyVerifiedError("Email is already verified")

        otp = await OtpService.issue(session, user.email, OTP_PURPOSE_EMAIL_VERIFICATION)
        sent, _ = await OtpService.deliver(otp, user.first_name)
        if not sent:
            raise OtpDeliveryError("Failed to send OTP. Please try again.")
        return create_verification_token(user.email)

    @staticmethod
    async def verify_email(
        session: AsyncSession,
        email: str,
        otp: str,
        verification_token: str,
    ) -> User:
        """Mark the account verified after checking session token and OTP.

        Raises:
            InvalidSessionError: Bad verification token.
            InvalidOtpError: Wrong, expired or used code.
            UserNotFoundError: The account no longer exists.
        """
        AuthService._check_session_token(verification_token, email, TOKEN_TYPE_VERIFICATION)

        if not await OtpService.verify(session, email, otp, OTP_PURPOSE_EMAIL_VERIFICATION):
            raise InvalidOtpError("Invalid or expired OTP code")

        user = await AuthService.get_user_by_email(session, email)
        if not user:
            raise UserNotFoundError("User not found")
        user.is_verified = True
        await session.flush()
        logger.info(f"Email verified: {user.email}")
        return user

    # ------------------------------------------------------------------
    # 登录
    # ------------------------------------------------------------------
    @staticmethod
    async def login(
        session: AsyncSession,
        email: str,
        password: str,
    ) -> tuple[User, str]:
        """Authenticate with email and password.

        Returns:
            tuple[User, str]: The user and a login token.

        Raises:
            InvalidCredentialsError: Unknown email, wrong password, or a
                disabled account.
            EmailNotVerifiedError: Correct credentials on an unverified account.
        """
        user = await AuthService.get_user_by_email(session, email)
        if not user or not user.check_password(password) or not user.is_active:
            raise InvalidCredentialsError("Invalid email or password")

        if not user.is_verified:
            raise EmailNotVerifiedError(user.email)

        user.update_last_login()
        await session.flush()

        token = create_access_token(user.id, user.email)
        logger.info(f"User logged in: {user.email}")
        return user, token

    # ------------------------------------------------------------------
    # 找回密码
    # ------------------------------------------------------------------
    @staticmethod
    async def forgot_password(session: AsyncSession, email: str) -> str:
        """Mail a password reset code to a verified account.

        Returns:
            str: A verification token for the reset session.

        Raises:
            UserNotFoundError: Unknown email.
            EmailNotVerifiedError: Account has not been verified.
            OtpRateLimitedError: Requested again within the resend interval.
            OtpDeliveryError: The email could not be sent.
        """
        user = await AuthService.get_user_by_email(session, email)
        if not user:
            raise UserNotFoundError("No account found with this email address.")
        if not user.is_verified:
            raise EmailNotVerifiedError(
                user.email,
                "Please verify your email address before resetting your password.",
            )

        otp = await OtpService.issue(session, user.email, OTP_PURPOSE_PASSWORD_RESET)
        sent, _ = await OtpService.deliver(otp, user.first_name)
        if not sent:
            raise OtpDeliveryError("Failed to send password reset code. Please try again.")
        return create_verification_token(user.email)

    @staticmethod
    async def verify_reset_otp(
        session: AsyncSession,
        email: str,
        otp: str,
        verification_token: str,
    ) -> str:
        """Exchange a valid reset OTP for a short-lived reset token.

        Raises:
            InvalidSessionError: Bad verification token.
            UserNotFoundError: Unknown email.
            InvalidOtpError: Wrong, expired or used code.
        """
        AuthService._check_session_token(verification_token, email, TOKEN_TYPE_VERIFICATION)

        user = await AuthService.get_user_by_email(session, email)
        if not user:
            raise UserNotFoundError("User not found")

        if not await OtpService.verify(session, email, otp, OTP_PURPOSE_PASSWORD_RESET):
            raise InvalidOtpError("Invalid or expired OTP code")

        return create_reset_token(user.id, user.email)

    @staticmethod
    async def reset_password(
        session: AsyncSession,
        email: str,
        new_password: str,
        reset_token: str,
    ) -> User:
        """Set a new password using a reset token.

        Raises:
            InvalidSessionError: Bad or mismatched reset token.
            UserNotFoundError: The account no longer exists.
        """
        payload = decode_token(reset_token, expected_type=TOKEN_TYPE_RESET)
        if not payload or payload.get("email") != email.lower():
            raise InvalidSessionError("Invalid or expired reset token")

        user = await AuthService.get_user_by_email(session, email)
        if not user or user.id != payload.get("sub"):
            raise UserNotFoundError("User not found")

        user.set_password(new_password)
        await OtpService.discard(session, user.email, OTP_PURPOSE_PASSWORD_RESET)
        await session.flush()
        logger.info(f"Password reset for {user.email}")
        return user
