# ==============================================================================
# 模块: report/models.py
# 功能: 报告模块的数据库模型定义 (ORM 映射层)
# 架构角色: 定义白标 SEO 报告表 Report, 存储报告元数据、生命周期状态
#           以及外部分析服务返回的结果。
# 设计说明:
#   - 使用 SQLAlchemy 2.0 声明式映射 (Mapped + mapped_column)
#   - report_data 以 JSON 存储:
#       pending / processing 时为空,
#       completed 时为分析结果 (含可选的 manualChecks 覆盖表),
#       failed 时为 {"error": "..."}
#   - dispatch_attempt 在每次分派分析时递增, 分析结果回写时作为乐观锁条件,
#     过期的回写会被丢弃
# ==============================================================================
"""Report models."""
from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.dialects.mysql import JSON
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

REPORT_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)
IN_PROGRESS_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)

DEFAULT_OPTIONS = "Default"

# report_data 中保存人工覆盖结果的键
MANUAL_CHECKS_KEY = "manualChecks"


# --------------------------------------------------------------------------
# Report 模型 - 报告表
# 关键字段:
#   - user_id: 报告所属用户, 用户删除时级联删除
#   - website: 被分析的网站地址, 创建后不可修改
#   - options: 分析选项标签, 默认 "Default"
#   - status: pending / processing / completed / failed
#   - report_data: 见模块说明
#   - dispatch_attempt: 已分派的分析次数
# --------------------------------------------------------------------------
class Report(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """White-label SEO report for a website."""

    __tablename__ = "reports"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    website: Mapped[str] = mapped_column(String(2048), nullable=False)
    options: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_OPTIONS
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_PENDING,
        index=True,
        comment="pending, processing, completed, failed",
    )
    report_data: Mapped[dict | None] = mapped_column(
        JSON, nullable=True, comment="Analysis result or {error}"
    )
    dispatch_attempt: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, status={self.status})>"

    @property
    def error_message(self) -> str | None:
        """Stored failure message, if the report failed."""
        if self.status == STATUS_FAILED and isinstance(self.report_data, dict):
            return self.report_data.get("error")
        return None
