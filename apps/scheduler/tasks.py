# ==============================================================================
# 模块: SEOMaster 调度任务注册与管理模块
# 作用: 创建和管理 APScheduler 调度器实例, 注册后台定时任务。
# 架构角色: 调度层的顶层编排器, 由 main.py 的 lifespan 启动与停止。
# 当前任务:
#   - otp_cleanup_job: 定期删除过期的 OTP 验证码
# ==============================================================================

"""Scheduler tasks for SEOMaster."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from settings import settings

logger = logging.getLogger(__name__)

# 模块级别的调度器单例
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler singleton."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    return _scheduler


def register_jobs(scheduler: AsyncIOScheduler) -> None:
    """Register all periodic jobs on ``scheduler``."""
    from apps.scheduler.jobs.otp_cleanup_job import run_otp_cleanup_job

    # 调度器启动前 replace_existing 不会对待添加任务去重, 先移除同 id 任务
    if scheduler.get_job("otp_cleanup_job") is not None:
        scheduler.remove_job("otp_cleanup_job")

    scheduler.add_job(
        run_otp_cleanup_job,
        IntervalTrigger(minutes=settings.otp_cleanup_interval_minutes),
        id="otp_cleanup_job",
        name="Delete expired OTP codes",
        replace_existing=True,
    )
    logger.info(
        "OTP cleanup job registered (interval=%d min)",
        settings.otp_cleanup_interval_minutes,
    )


async def start_scheduler() -> None:
    """Start the scheduler and register all jobs."""
    scheduler = get_scheduler()
    register_jobs(scheduler)
    scheduler.start()
    logger.info("Scheduler started")


async def stop_scheduler() -> None:
    """Stop the scheduler without waiting for running jobs."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
