# ==========================================================================
# 认证模块 - Pydantic 数据校验模式 (Schemas)
# --------------------------------------------------------------------------
# 本模块定义认证相关 API 端点的请求和响应模型。
# 线上字段统一为 camelCase（firstName、verificationToken 等），
# 由 CamelModel 的 alias_generator 自动生成；输入同时接受 snake_case。
#
# 包含的 Schema：
#   - RegisterRequest / RegisterResponse      : 注册
#   - EmailRequest                             : 发送验证码 / 找回密码
#   - OtpVerifyRequest                         : 验证 OTP（邮箱验证、重置密码共用）
#   - LoginRequest / LoginResponse             : 登录
#   - ResetPasswordRequest                     : 提交新密码
#   - UserResponse                             : 用户信息
# ==========================================================================

"""Pydantic schemas for authentication API."""

from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from core.schemas import CamelModel


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class UserResponse(CamelModel):
    """Public view of a user account."""

    id: str
    first_name: str
    last_name: str
    company_name: str | None = None
    email: str
    is_verified: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RegisterRequest(CamelModel):
    """Request schema for user registration."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company_name: str | None = Field(default=None, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        """Reject names that are blank after stripping whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    user: UserResponse
    verification_token: str


class EmailRequest(CamelModel):
    """Request carrying only an email address."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class VerificationTokenResponse(CamelModel):
    success: bool = True
    message: str
    verification_token: str


class OtpVerifyRequest(CamelModel):
    """Request schema for checking a 4-digit OTP within a verification session."""

    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=4, pattern=r"^\d{4}$")
    verification_token: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class VerifyOtpResponse(CamelModel):
    success: bool = True
    message: str
    user: UserResponse


class ResetTokenResponse(CamelModel):
    success: bool = True
    message: str
    reset_token: str


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class LoginResponse(CamelModel):
    success: bool = True
    message: str
    token: str
    user: UserResponse


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    reset_token: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class MessageResponse(CamelModel):
    success: bool = True
    message: str
