# =============================================================================
# 模块: apps/report/poller.py
# 功能: 客户端报告状态轮询器
# 架构角色: 客户端侧, 基于 ReportClient 跟踪一次报告生成直到终态。
# 流程:
#   1. 首次调用 get(reanalyze=True), 强制开始一次分析
#   2. 状态为 pending / processing 时, 每隔 interval 秒调用一次
#      get(status_only=True), 最多 max_attempts 次
#   3. 观察到 completed: 追加一次完整读取以获得 reportData 后返回
#   4. 观察到 failed: 追加一次完整读取取出错误信息, 抛出 ReportGenerationFailed
#      完整读取的状态优先; 若已回到 pending / processing, 继续轮询并共用次数上限
#   5. 超过次数上限: 本地状态置为 failed, 抛出 PollingTimeoutError
# 设计说明:
#   - 严格串行, 同一时刻最多一个请求
#   - cancel() 之后不再发出请求、不再回调, 进行中的请求结果被丢弃
# =============================================================================
"""Client-side report status poller."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from settings import settings

from .client import ReportClient
from .exceptions import PollingTimeoutError, ReportClientError, ReportGenerationFailed
from .models import IN_PROGRESS_STATUSES, STATUS_COMPLETED, STATUS_FAILED

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, int], None]


class ReportPoller:
    """Poll a report until it completes or fails.

    Args:
        client: API client used for every request.
        interval: Seconds between status polls.
        max_attempts: Maximum number of status polls before giving up.
        on_status: Called with ``(status, attempt)`` after every response;
            ``attempt`` is 0 for the initial reanalyze read.
        sleep: Awaitable sleep function (tests inject a fake).
    """

    def __init__(
        self,
        client: ReportClient,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_status: Optional[StatusCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.interval = settings.poller_interval_seconds if interval is None else interval
        self.max_attempts = settings.poller_max_attempts if max_attempts is None else max_attempts
        self.on_status = on_status
        self._sleep = sleep
        self.status: Optional[str] = None
        self.attempts = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop watching. Pending responses are ignored and no callbacks fire."""
        self._cancelled = True
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    def _observe(self, report: Dict[str, Any], attempt: int) -> str:
        if self._cancelled:
            raise asyncio.CancelledError()
        status = report["status"]
        self.status = status
        if self.on_status is not None:
            self.on_status(status, attempt)
        return status

    async def watch(self, report_id: str) -> Dict[str, Any]:
        """Start an analysis of ``report_id`` and wait for its result.

        Returns:
            dict: The completed report including ``reportData``.

        Raises:
            PollingTimeoutError: No terminal status after ``max_attempts`` polls.
            ReportGenerationFailed: The report ended in ``failed``.
            asyncio.CancelledError: ``cancel()`` was called.
        """
        if self._cancelled:
            raise asyncio.CancelledError()
        self._task = asyncio.current_task()
        self.attempts = 0
        try:
            report = await self.client.get_report(report_id, reanalyze=True)
            status = self._observe(report, 0)

            while True:
                while status in IN_PROGRESS_STATUSES:
                    if self.attempts >= self.max_attempts:
                        self.status = STATUS_FAILED
                        logger.warning(
                            f"[REPORT {report_id}] Gave up after {self.attempts} status polls"
                        )
                        raise PollingTimeoutError()
                    await self._sleep(self.interval)
                    if self._cancelled:
                        raise asyncio.CancelledError()
                    self.attempts += 1
                    report = await self.client.get_report(report_id, status_only=True)
                    status = self._observe(report, self.attempts)

                # 状态轮询响应不含 reportData，需要一次完整读取
                if "reportData" in report or status not in (STATUS_COMPLETED, STATUS_FAILED):
                    break
                report = await self._full_read(report_id, report)
                # 以完整读取的状态为准：期间可能已被其他会话 reanalyze
                status = self.status = report["status"]
                if status not in IN_PROGRESS_STATUSES:
                    break

            if status == STATUS_FAILED:
                error = (report.get("reportData") or {}).get("error")
                raise ReportGenerationFailed(error or "Report generation failed", report=report)
            return report
        finally:
            self._task = None

    async def _full_read(self, report_id: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
        try:
            report = await self.client.get_report(report_id)
        except ReportClientError:
            if fallback.get("status") == STATUS_FAILED:
                return fallback
            raise
        if self._cancelled:
            raise asyncio.CancelledError()
        return report
