# =============================================================================
# OTP 验证码服务模块
# =============================================================================
# 本模块提供邮箱验证与密码重置共用的一次性验证码（OTP）功能：
#   1. 签发验证码 - 生成 4 位数字验证码并写入 otp_codes 表
#   2. 发送验证码 - 按用途选择邮件模板并通过 SMTP 发送
#   3. 校验验证码 - 校验存在、未使用、未过期，成功后标记为已使用
#   4. 清理 - 删除过期验证码（由调度器定时调用）
#
# 设计决策：
#   - 验证码存数据库而非缓存，保证 Redis 缺失时流程仍然可用
#   - 同一邮箱同一用途只保留最新的验证码，签发新码时删除旧码
#   - 重发频率限制依赖 Redis（core.cache），未配置时不限流
# =============================================================================

"""OTP service for email verification and password reset."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.auth.email_templates import (
    get_password_reset_email_content,
    get_verification_email_content,
)
from apps.auth.exceptions import OtpRateLimitedError
from common.email import send_email_async
from core.cache import cache
from core.models.otp import (
    OTP_PURPOSE_EMAIL_VERIFICATION,
    OTP_PURPOSE_PASSWORD_RESET,
    OtpCode,
)
from settings import settings

logger = logging.getLogger(__name__)


class OtpService:
    """Service class for OTP issuing and verification.

    Attributes:
        CODE_LENGTH: Number of digits in a code.
        RATE_KEY_PREFIX: Cache key prefix used for resend throttling.
    """

    CODE_LENGTH = 4
    RATE_KEY_PREFIX = "otp:rate:"

    @staticmethod
    def _generate_code() -> str:
        """Generate a random 4-digit code (1000-9999)."""
        return str(1000 + secrets.randbelow(9000))

    @staticmethod
    def _get_rate_key(email: str, purpose: str) -> str:
        return f"{OtpService.RATE_KEY_PREFIX}{purpose}:{email.lower()}"

    @staticmethod
    async def issue(
        session: AsyncSession,
        email: str,
        purpose: str,
    ) -> OtpCode:
        """Create a fresh OTP for ``email`` and ``purpose``.

        Previous codes for the same pair are deleted.

        Raises:
            OtpRateLimitedError: If a code was issued within the resend interval.
        """
        email = email.lower()
        interval = settings.otp_resend_interval_seconds
        rate_key = OtpService._get_rate_key(email, purpose)
        if interval > 0 and not cache.add(rate_key, 1, ttl=interval):
            logger.warning(f"OTP rate limited for {email} ({purpose})")
            raise OtpRateLimitedError(cache.ttl(rate_key) or interval)

        await session.execute(
            delete(OtpCode).where(OtpCode.email == email, OtpCode.purpose == purpose)
        )
        otp = OtpCode(
            email=email,
            code=OtpService._generate_code(),
            purpose=purpose,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.otp_expire_minutes),
            verified=False,
        )
        session.add(otp)
        await session.flush()
        logger.info(f"OTP issued for {email} ({purpose})")
        return otp

    @staticmethod
    async def deliver(otp: OtpCode, first_name: str) -> tuple[bool, str]:
        """Email ``otp`` to its owner using the template for its purpose.

        On failure the resend throttle is released so the user can retry
        immediately.

        Returns:
            tuple[bool, str]: (sent, error_message)
        """
        if otp.purpose == OTP_PURPOSE_PASSWORD_RESET:
            subject = f"{settings.app_name} - Password reset code"
            plain_text, html_body = get_password_reset_email_content(
                otp.code, first_name, settings.app_name, settings.otp_expire_minutes
            )
        else:
            subject = f"{settings.app_name} - Email verification code"
            plain_text, html_body = get_verification_email_content(
                otp.code, first_name, settings.app_name, settings.otp_expire_minutes
            )

        sent, error_msg = await send_email_async(
            subject,
            plain_text,
            [otp.email],
            html_body=html_body,
        )
        if not sent:
            cache.delete(OtpService._get_rate_key(otp.email, otp.purpose))
            logger.error(f"Failed to send OTP email to {otp.email}: {error_msg}")
        return sent, error_msg

    @staticmethod
    async def verify(
        session: AsyncSession,
        email: str,
        code: str,
        purpose: str,
    ) -> bool:
        """Check ``code`` and mark it used.

        Expired codes are deleted when encountered.

        Returns:
            bool: ``True`` if the code was valid, unexpired and unused.
        """
        email = email.lower()
        result = await session.execute(
            select(OtpCode)
            .where(
                OtpCode.email == email,
                OtpCode.code == code,
                OtpCode.purpose == purpose,
                OtpCode.verified.is_(False),
            )
            .order_by(OtpCode.created_at.desc())
            .limit(1)
        )
        otp = result.scalar_one_or_none()
        if otp is None:
            return False

        if otp.is_expired():
            await session.delete(otp)
            await session.flush()
            return False

        otp.verified = True
        await session.flush()
        return True

    @staticmethod
    async def discard(session: AsyncSession, email: str, purpose: str) -> None:
        """Delete all codes of ``purpose`` for ``email``."""
        await session.execute(
            delete(OtpCode).where(OtpCode.email == email.lower(), OtpCode.purpose == purpose)
        )

    @staticmethod
    async def purge_expired(session: AsyncSession) -> int:
        """Delete every expired code.

        Returns:
            int: Number of deleted rows.
        """
        result = await session.execute(
            delete(OtpCode).where(OtpCode.expires_at < datetime.now(timezone.utc))
        )
        return result.rowcount or 0


__all__ = [
    "OtpService",
    "OTP_PURPOSE_EMAIL_VERIFICATION",
    "OTP_PURPOSE_PASSWORD_RESET",
]
