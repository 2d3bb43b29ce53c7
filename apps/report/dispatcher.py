# =============================================================================
# 模块: apps/report/dispatcher.py
# 功能: 分析任务分派器
# 架构角色: 业务逻辑层与外部分析服务之间的适配层。
#   dispatch() 启动一个脱离请求的 asyncio 后台任务后立即返回:
#     1. POST {backend}/api/analyze  {"url", "reportId"}  (X-API-Key 头)
#     2. 成功: status=completed, report_data=<响应中的 data 对象>
#     3. 失败 (非 2xx / 网络错误 / 超时 / 响应格式错误):
#        status=failed, report_data={"error": <错误信息>}
#   不重试, 不向触发请求抛出异常。
#
# 设计说明:
#   - 回写时以 dispatch_attempt 为条件 (乐观锁), 期间若已重新分析,
#     旧结果被丢弃并记录日志
#   - 回写同时要求 status 仍为 processing, 同一次分派只会落地一次终态
#   - 进行中的任务保存在集合中, 关闭时 drain() 等待其结束
# =============================================================================

"""Analysis dispatcher for report generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database import get_session_factory
from core.models.base import utcnow
from settings import settings

from .exceptions import AnalysisDispatchError
from .models import STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, Report

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze"


class AnalysisDispatcher:
    """Fire-and-forget client for the external analysis service.

    Args:
        backend_url: Base URL of the analysis service.
        api_key: Value sent in the ``X-API-Key`` header.
        timeout: Transport timeout in seconds for the analyze call.
        session_factory: Factory for the sessions used to store results.
            Defaults to the application's session factory.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        backend_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.backend_url = (backend_url or settings.analysis_backend_url).rstrip("/")
        self.api_key = settings.analysis_api_key if api_key is None else api_key
        self.timeout = timeout or settings.analysis_timeout
        self._session_factory = session_factory
        self._transport = transport
        self._tasks: set[asyncio.Task] = set()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    @property
    def in_flight(self) -> int:
        """Number of analyses that have not finished yet."""
        return len(self._tasks)

    def dispatch(self, report_id: str, website: str, attempt: int) -> asyncio.Task:
        """Start analysing ``website`` for ``report_id`` in the background.

        Returns immediately. The returned task never raises.
        """
        logger.info(f"[REPORT {report_id}] Starting SEO analysis for: {website} (attempt {attempt})")
        task = asyncio.create_task(
            self._run(report_id, website, attempt),
            name=f"analyze-{report_id}-{attempt}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight analyses to finish.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        if not self._tasks:
            return
        pending = list(self._tasks)
        logger.info(f"Waiting for {len(pending)} in-flight analyses")
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
            logger.warning(f"Cancelled {len(not_done)} analyses still running at shutdown")

    # ------------------------------------------------------------------
    # 后台任务主体
    # ------------------------------------------------------------------
    async def _run(self, report_id: str, website: str, attempt: int) -> None:
        try:
            data = await self.analyze(report_id, website)
            status, payload = STATUS_COMPLETED, data
            logger.info(f"[REPORT {report_id}] Analysis completed successfully")
        except AnalysisDispatchError as e:
            status, payload = STATUS_FAILED, {"error": str(e)}
            logger.error(f"[REPORT {report_id}] Analysis failed: {e}")
        except Exception as e:
            status, payload = STATUS_FAILED, {"error": str(e) or type(e).__name__}
            logger.exception(f"[REPORT {report_id}] Unexpected analysis error")

        try:
            stored = await self._store_result(report_id, attempt, status, payload)
        except Exception:
            logger.exception(f"[REPORT {report_id}] Failed to store analysis result")
            return

        if stored:
            logger.info(f"[REPORT {report_id}] Report marked as {status}")
        else:
            logger.warning(
                f"[REPORT {report_id}] Discarding stale result of attempt {attempt}"
            )

    async def analyze(self, report_id: str, website: str) -> dict[str, Any]:
        """Call the analysis service and return its ``data`` object.

        Raises:
            AnalysisDispatchError: On transport errors, non-2xx responses,
                or a body without a JSON object under ``data``.
        """
        url = f"{self.backend_url}{ANALYZE_PATH}"
        headers = {"X-API-Key": self.api_key or ""}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url,
                    json={"url": website, "reportId": report_id},
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise AnalysisDispatchError(f"Analysis service timed out: {e}") from e
        except httpx.HTTPError as e:
            raise AnalysisDispatchError(f"Analysis service unreachable: {e}") from e

        if not response.is_success:
            raise AnalysisDispatchError(f"Backend returned status {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise AnalysisDispatchError("Backend returned invalid JSON") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise AnalysisDispatchError("Backend response is missing analysis data")
        return data

    async def _store_result(
        self,
        report_id: str,
        attempt: int,
        status: str,
        payload: dict[str, Any],
    ) -> bool:
        """Write the terminal state if ``attempt`` is still current.

        Returns:
            bool: ``False`` if the result was stale and discarded.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(Report)
                .where(
                    Report.id == report_id,
                    Report.dispatch_attempt == attempt,
                    Report.status == STATUS_PROCESSING,
                )
                .values(status=status, report_data=payload, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return bool(result.rowcount)


# 全局分派器实例（惰性初始化）
_dispatcher: AnalysisDispatcher | None = None


def get_dispatcher() -> AnalysisDispatcher:
    """Get or create the process-wide dispatcher (also a FastAPI dependency)."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = AnalysisDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: AnalysisDispatcher | None) -> None:
    """Replace the process-wide dispatcher (``None`` resets to lazy init)."""
    global _dispatcher
    _dispatcher = dispatcher
