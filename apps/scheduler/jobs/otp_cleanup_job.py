# ==============================================================================
# 模块: SEOMaster 过期验证码清理定时任务
# 作用: 删除已过期的 OTP 验证码记录。
# 架构角色: 认证数据的生命周期管理。验证码在签发新码或校验时会被顺带清理,
#           本任务负责回收从未被再次访问的过期记录。
# 执行方式: 由 APScheduler 的 IntervalTrigger 按 otp_cleanup_interval_minutes 触发。
# ==============================================================================

"""OTP cleanup job for SEOMaster."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apps.auth.otp_service import OtpService
from core.database import session_scope

logger = logging.getLogger(__name__)


async def run_otp_cleanup_job() -> dict:
    """Delete expired OTP codes.

    Returns:
        dict: Cleanup summary with status, duration, and deleted count.
    """
    logger.info("Starting OTP cleanup job")
    start_time = datetime.now(timezone.utc)

    async with session_scope() as session:
        deleted = await OtpService.purge_expired(session)

    end_time = datetime.now(timezone.utc)
    summary = {
        "status": "completed",
        "duration_seconds": (end_time - start_time).total_seconds(),
        "otp_codes_deleted": deleted,
        "timestamp": end_time.isoformat(),
    }
    logger.info(f"OTP cleanup job completed: {summary}")
    return summary
