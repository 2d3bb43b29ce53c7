# =============================================================================
# 用户模型模块
# =============================================================================
# 本模块定义 SEOMaster 的用户模型（User）。
#   - email 唯一且统一存储为小写，作为登录凭据
#   - 注册后 is_verified 为 False，邮箱 OTP 验证通过后置为 True
#   - 密码只存储 bcrypt 哈希
# =============================================================================

"""User model for SEOMaster."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Registered account owning reports.

    Attributes:
        id: String UUID primary key.
        first_name: Given name.
        last_name: Family name.
        company_name: Optional company shown on white-label reports.
        email: Unique, lowercased email address.
        password_hash: Bcrypt hash of the password.
        is_verified: Whether the email address has been confirmed via OTP.
        is_active: Whether the account may sign in.
        last_login_at: Last successful login (UTC).
    """

    __tablename__ = "users"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    def set_password(self, password: str) -> None:
        """Set the user's password hash."""
        from core.security import hash_password

        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        """Check whether a plaintext password matches."""
        from core.security import verify_password

        return verify_password(password, self.password_hash)

    def update_last_login(self) -> None:
        self.last_login_at = utcnow()
