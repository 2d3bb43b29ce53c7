# ==============================================================================
# 模块: report/service.py
# 功能: 报告生命周期的业务逻辑服务层 (Service 层)
# 架构角色: 位于 API 层和数据访问层之间, 负责报告的创建、读取 (带分派副作用)、
#           更新、删除、列表和公开分享视图。
# 设计说明:
#   - 所有按用户的操作都以 (id, user_id) 查询, 不存在与无权访问统一为
#     ReportNotFoundError, 不泄露报告是否存在
#   - 创建时不分派分析, 首次读取 pending 报告 (或 reanalyze) 时才分派
#   - 状态切换为 processing 使用以 dispatch_attempt 为条件的 UPDATE,
#     并发的两次首次读取只会有一次真正分派
#   - 切换后先提交事务, 再把 (id, website, attempt) 交给分派器,
#     后台任务读取到的一定是已提交的状态
# ==============================================================================
"""Report service."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import utcnow
from settings import settings

from .dispatcher import AnalysisDispatcher
from .exceptions import ReportNotFoundError, ReportValidationError
from .models import (
    DEFAULT_OPTIONS,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    Report,
)

logger = logging.getLogger(__name__)


class ReadMode(str, Enum):
    """How ``ReportService.get`` should read a report."""

    FULL = "full"
    STATUS_ONLY = "status_only"
    REANALYZE = "reanalyze"


# --------------------------------------------------------------------------
# ReportService - 报告业务服务类
# 职责: 报告生命周期控制 (状态机见模块说明)
#   pending    --(首次读取 / reanalyze)--> processing
#   processing --(分析成功)--> completed
#   processing --(分析失败)--> failed
#   completed / failed --(reanalyze)--> processing
# --------------------------------------------------------------------------
class ReportService:
    """Service class for report lifecycle operations.

    Args:
        dispatcher: Analysis dispatcher used when a read triggers analysis.
    """

    def __init__(self, dispatcher: AnalysisDispatcher):
        self.dispatcher = dispatcher

    async def _get_owned(self, user_id: str, report_id: str, db: AsyncSession) -> Report:
        result = await db.execute(
            select(Report).where(Report.id == report_id, Report.user_id == user_id)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise ReportNotFoundError()
        return report

    # ----------------------------------------------------------------------
    # create - 创建报告 (status=pending, 不分派)
    # ----------------------------------------------------------------------
    async def create(
        self,
        user_id: str,
        website: Any,
        db: AsyncSession,
        options: str | None = None,
    ) -> Report:
        """Create a pending report for ``website``.

        Raises:
            ReportValidationError: If ``website`` is missing, not a string,
                or blank.
        """
        if not isinstance(website, str) or not website.strip():
            raise ReportValidationError("Website URL is required")

        report = Report(
            user_id=user_id,
            website=website.strip(),
            options=options or DEFAULT_OPTIONS,
            status=STATUS_PENDING,
            report_data=None,
            dispatch_attempt=0,
        )
        db.add(report)
        await db.flush()
        await db.refresh(report)
        logger.info(f"[REPORT {report.id}] Created for {report.website}")
        return report

    # ----------------------------------------------------------------------
    # get - 读取报告
    #   status_only: 仅返回 {id, status, 时间戳}, 由 API 层裁剪
    #   full:        完整记录
    #   reanalyze:   同 full, 但总是重新分派
    # 若当前为 pending 或要求 reanalyze, 先切换为 processing 并分派。
    # ----------------------------------------------------------------------
    async def get(
        self,
        user_id: str,
        report_id: str,
        db: AsyncSession,
        mode: ReadMode = ReadMode.FULL,
    ) -> Report:
        """Read a report, starting analysis when needed.

        Raises:
            ReportNotFoundError: If missing or not owned by ``user_id``.
        """
        report = await self._get_owned(user_id, report_id, db)

        if report.status == STATUS_PENDING or mode == ReadMode.REANALYZE:
            await self._start_analysis(report, db)
        return report

    async def _start_analysis(self, report: Report, db: AsyncSession) -> None:
        captured = report.dispatch_attempt
        result = await db.execute(
            update(Report)
            .where(Report.id == report.id, Report.dispatch_attempt == captured)
            .values(
                status=STATUS_PROCESSING,
                report_data=None,
                dispatch_attempt=captured + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(report)

        if not result.rowcount:
            # 另一个请求已抢先分派
            logger.info(f"[REPORT {report.id}] Analysis already dispatched by a concurrent read")
            return

        self.dispatcher.dispatch(report.id, report.website, report.dispatch_attempt)

    # ----------------------------------------------------------------------
    # update - 整体替换 report_data (人工覆盖保存)
    # ----------------------------------------------------------------------
    async def update(
        self,
        user_id: str,
        report_id: str,
        report_data: dict[str, Any] | None,
        db: AsyncSession,
    ) -> Report:
        """Replace ``report_data`` wholesale and bump ``updated_at``.

        Raises:
            ReportValidationError: If ``report_data`` is absent, or the
                report has not completed.
            ReportNotFoundError: If missing or not owned by ``user_id``.
        """
        if report_data is None:
            raise ReportValidationError("reportData is required")
        if not isinstance(report_data, dict):
            raise ReportValidationError("reportData must be an object")

        report = await self._get_owned(user_id, report_id, db)
        # 仅 completed 报告可编辑: failed 的错误信息与进行中的分析结果不可被覆盖
        if report.status != STATUS_COMPLETED:
            raise ReportValidationError("Only completed reports can be edited")
        report.report_data = report_data
        report.updated_at = utcnow()
        await db.flush()
        await db.refresh(report)
        logger.info(f"[REPORT {report.id}] Report data updated")
        return report

    # ----------------------------------------------------------------------
    # delete - 硬删除
    # ----------------------------------------------------------------------
    async def delete(self, user_id: str, report_id: str, db: AsyncSession) -> None:
        """Delete a report.

        Raises:
            ReportNotFoundError: If missing or not owned by ``user_id``.
        """
        report = await self._get_owned(user_id, report_id, db)
        await db.delete(report)
        await db.flush()
        logger.info(f"[REPORT {report_id}] Deleted")

    # ----------------------------------------------------------------------
    # list_reports - 当前用户的报告列表, 按创建时间倒序, 上限 list_limit
    # ----------------------------------------------------------------------
    async def list_reports(
        self, user_id: str, db: AsyncSession, limit: int | None = None
    ) -> tuple[list[Report], int]:
        """List a user's reports, newest first.

        Returns:
            tuple[list[Report], int]: (reports, total_count).
        """
        limit = min(limit or settings.report_list_limit, settings.report_list_limit)
        count_result = await db.execute(
            select(func.count())
            .select_from(Report)
            .where(Report.user_id == user_id)
        )
        total = count_result.scalar() or 0
        result = await db.execute(
            select(Report)
            .where(Report.user_id == user_id)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ----------------------------------------------------------------------
    # get_public - 公开分享视图 (无需认证, 无分派副作用)
    # ----------------------------------------------------------------------
    async def get_public(self, report_id: str, db: AsyncSession) -> dict[str, Any]:
        """Return the share view of a report.

        Only ``{id, status, website}`` until the report completed; the full
        public record afterwards.

        Raises:
            ReportNotFoundError: If the report does not exist.
        """
        result = await db.execute(select(Report).where(Report.id == report_id))
        report = result.scalar_one_or_none()
        if report is None:
            logger.info(f"[PUBLIC REPORT {report_id}] Report not found")
            raise ReportNotFoundError("Report not found")

        if report.status != STATUS_COMPLETED:
            logger.info(f"[PUBLIC REPORT {report_id}] Report not completed yet (status: {report.status})")
            return {"id": report.id, "status": report.status, "website": report.website}

        return {
            "id": report.id,
            "status": report.status,
            "website": report.website,
            "report_data": report.report_data,
            "created_at": report.created_at,
            "updated_at": report.updated_at,
        }
