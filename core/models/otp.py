"""One-time password model for SEOMaster."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TimestampMixin

OTP_PURPOSE_EMAIL_VERIFICATION = "email_verification"
OTP_PURPOSE_PASSWORD_RESET = "password_reset"


class OtpCode(Base, TimestampMixin):
    """A 4-digit code mailed to a user for verification or password reset.

    Issuing a new code for an (email, purpose) pair replaces older ones.
    """

    __tablename__ = "otp_codes"
    __table_args__ = (
        Index("ix_otp_codes_email_purpose", "email", "purpose"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(4), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<OtpCode(email={self.email}, purpose={self.purpose})>"

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite 读回的时间不带时区
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now
