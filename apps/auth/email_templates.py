# =============================================================================
# OTP 邮件模板模块
# =============================================================================
# 本模块提供认证流程中发送的邮件内容：
#   1. 邮箱验证码邮件（注册后 / 重新发送）
#   2. 密码重置验证码邮件
#
# 每个模板同时返回纯文本和 HTML 两种格式，确保在各种邮件客户端都能正常显示。
# =============================================================================

"""Email templates for OTP emails in SEOMaster."""

from __future__ import annotations

import html

_HTML_LAYOUT = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name} - {title}</title>
</head>
<body style="margin: 0; padding: 0; background-color: #f0f2f5; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" width="100%" style="max-width: 500px; background-color: #ffffff; border-radius: 12px;">
                    <tr>
                        <td style="padding: 32px 40px 24px; text-align: center; border-bottom: 1px solid #f0f0f0;">
                            <h1 style="margin: 0; font-size: 24px; font-weight: 600; color: #1a1a2e;">{app_name}</h1>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 32px 40px;">
                            <h2 style="margin: 0 0 16px; font-size: 18px; color: #1a1a2e;">{title}</h2>
                            <p style="margin: 0 0 24px; font-size: 15px; color: #444; line-height: 1.6;">{intro}</p>
                            <div style="text-align: center; padding: 24px 0;">
                                <span style="display: inline-block; background: #1a1a2e; color: #ffffff; border-radius: 8px; padding: 16px 40px; font-size: 32px; letter-spacing: 8px; font-family: monospace;">{code}</span>
                            </div>
                            <p style="margin: 24px 0 0; font-size: 13px; color: #888;">
                                This code expires in {expire_minutes} minutes. If you did not request it, you can ignore this email.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""


def _render(
    *,
    app_name: str,
    title: str,
    intro: str,
    code: str,
    expire_minutes: int,
) -> tuple[str, str]:
    plain_text = (
        f"{app_name} - {title}\n\n"
        f"{intro}\n\n"
        f"Your code: {code}\n\n"
        f"This code expires in {expire_minutes} minutes.\n"
        f"If you did not request it, you can ignore this email.\n\n"
        f"---\n{app_name} Team\n"
    )
    html_body = _HTML_LAYOUT.format(
        app_name=app_name,
        title=title,
        intro=html.escape(intro),
        code=code,
        expire_minutes=expire_minutes,
    )
    return plain_text, html_body


def get_verification_email_content(
    code: str,
    first_name: str,
    app_name: str = "SEOMaster",
    expire_minutes: int = 10,
) -> tuple[str, str]:
    """Generate the email-verification OTP message.

    Returns:
        tuple[str, str]: (plain_text, html_body)
    """
    return _render(
        app_name=app_name,
        title="Verify your email",
        intro=f"Hi {first_name}, thanks for signing up. Enter this code to verify your email address:",
        code=code,
        expire_minutes=expire_minutes,
    )


def get_password_reset_email_content(
    code: str,
    first_name: str,
    app_name: str = "SEOMaster",
    expire_minutes: int = 10,
) -> tuple[str, str]:
    """Generate the password-reset OTP message.

    Returns:
        tuple[str, str]: (plain_text, html_body)
    """
    return _render(
        app_name=app_name,
        title="Reset your password",
        intro=f"Hi {first_name}, we received a request to reset your password. Enter this code to continue:",
        code=code,
        expire_minutes=expire_minutes,
    )
