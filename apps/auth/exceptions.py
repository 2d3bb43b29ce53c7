"""Domain exceptions raised by the authentication services.

认证业务异常，由 api.py 统一转换为 HTTP 错误响应。
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for authentication failures."""


class EmailAlreadyExistsError(AuthServiceError):
    """Registration attempted with an email that is already taken."""


class UserNotFoundError(AuthServiceError):
    """No account exists for the given email."""


class EmailAlreadyVerifiedError(AuthServiceError):
    """Verification requested for an already verified account."""


class EmailNotVerifiedError(AuthServiceError):
    """Operation requires a verified email address."""

    def __init__(self, email: str, message: str = "Please verify your email before logging in"):
        super().__init__(message)
        self.email = email


class InvalidCredentialsError(AuthServiceError):
    """Email or password did not match."""


class InvalidSessionError(AuthServiceError):
    """A verification or reset token is missing, expired, or bound to another email."""


class InvalidOtpError(AuthServiceError):
    """The OTP code is wrong, expired, or already used."""


class OtpRateLimitedError(AuthServiceError):
    """A new OTP was requested before the resend interval elapsed."""

    def __init__(self, retry_after: int):
        super().__init__(f"Please wait {retry_after} seconds before requesting a new code")
        self.retry_after = retry_after


class OtpDeliveryError(AuthServiceError):
    """The OTP email could not be sent."""
