# =============================================================================
# 模块: common/email.py
# 功能: 邮件发送模块（SMTP）
# 架构角色: 基础设施层，被认证模块用于投递 OTP 验证码邮件。
# 设计决策:
#   - 同步 smtplib 调用通过 asyncio.to_thread 放到线程池，避免阻塞事件循环
#   - 使用 tenacity 实现重试与退避
#   - email_enabled=False 时不真正发送，仅记录日志（本地开发与测试）
# =============================================================================
"""Email sending module for SEOMaster.

Sends plain-text + HTML mail through SMTP with retry/backoff.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional, Tuple

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from settings import settings

logger = logging.getLogger(__name__)


def _build_message(
    subject: str,
    body: str,
    from_addr: str,
    to_addrs: list[str],
    html_body: Optional[str] = None,
) -> MIMEText | MIMEMultipart:
    """Build a MIME message (multipart/alternative when HTML is given)."""
    if html_body:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
    else:
        msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = ", ".join(to_addrs)
    return msg


def _send_via_smtp(msg: MIMEText | MIMEMultipart, from_addr: str, to_addrs: list[str]) -> None:
    """Deliver a single message over SMTP.

    Raises:
        smtplib.SMTPException: On protocol errors.
        OSError: On connection errors.
    """
    if settings.smtp_ssl:
        server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout)
    else:
        server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout)
    try:
        server.ehlo()
        # TLS 升级后需要重新 EHLO
        if settings.smtp_tls and not settings.smtp_ssl and settings.smtp_host.lower() != "localhost":
            server.starttls()
            server.ehlo()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(from_addr, to_addrs, msg.as_string())
    finally:
        try:
            server.quit()
        except smtplib.SMTPException:
            pass


def send_email(
    subject: str,
    body: str,
    to_addrs: Iterable[str],
    *,
    html_body: Optional[str] = None,
    from_addr: Optional[str] = None,
) -> Tuple[bool, str]:
    """Send an email via SMTP with retry.

    发送邮件。失败时按 smtp_retries 次数重试，返回 (是否成功, 错误信息)。

    Args:
        subject: Email subject.
        body: Plain text body.
        to_addrs: Recipient email addresses.
        html_body: Optional HTML body.
        from_addr: Sender address, defaults to ``settings.email_from``.

    Returns:
        Tuple[bool, str]: (success, error_message)
    """
    to_list = [e.strip() for e in to_addrs if e and e.strip()]
    if not to_list:
        msg = "Email send aborted: no valid recipients"
        logger.error(msg)
        return False, msg

    if not settings.email_enabled:
        logger.info(f"Email disabled, skipping send to {to_list}: {subject}")
        return True, ""

    from_addr = from_addr or settings.email_from
    if not settings.smtp_host or not from_addr:
        msg = "SMTP configuration error: host or from_addr missing"
        logger.error(msg)
        return False, msg

    message = _build_message(subject, body, from_addr, to_list, html_body)
    retrying_send = retry(
        stop=stop_after_attempt(max(settings.smtp_retries, 1)),
        wait=wait_fixed(settings.smtp_retry_backoff),
        retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
        reraise=True,
    )(_send_via_smtp)

    try:
        retrying_send(message, from_addr, to_list)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"✗ SMTP send failed to {to_list}: {e}")
        return False, str(e)

    logger.info(f"✓ Email sent via SMTP to {to_list}")
    return True, ""


async def send_email_async(
    subject: str,
    body: str,
    to_addrs: Iterable[str],
    *,
    html_body: Optional[str] = None,
) -> Tuple[bool, str]:
    """Async wrapper around :func:`send_email` (runs in a worker thread)."""
    return await asyncio.to_thread(
        send_email,
        subject,
        body,
        list(to_addrs),
        html_body=html_body,
    )
