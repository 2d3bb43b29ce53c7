# ==============================================================================
# 模块: report/schemas.py
# 功能: 报告模块的 Pydantic 数据模型 (请求 / 响应序列化)
# 设计说明:
#   - 线上字段为 camelCase (reportData、createdAt), 由 CamelModel 生成
#   - ReportStatusSchema 只有 {id, status, createdAt, updatedAt},
#     结构上不存在 reportData 字段, 供轮询使用
#   - ReportMetaSchema 不含 reportData, 用于创建与列表
#   - ReportSchema 为完整记录, reportData 为空时序列化时省略
# ==============================================================================
"""Report schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from core.schemas import CamelModel

from .models import DEFAULT_OPTIONS


class CreateReportRequest(CamelModel):
    """Request body for ``POST /reports``.

    ``website`` is typed loosely so that non-string values reach the
    service and fail there with a report validation error.
    """

    website: Any = None
    options: str = Field(default=DEFAULT_OPTIONS, max_length=100)

    @field_validator("options", mode="before")
    @classmethod
    def default_options(cls, v: Any) -> Any:
        # null 或空字符串按默认选项处理
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_OPTIONS
        return v


class UpdateReportRequest(CamelModel):
    """Request body for ``PATCH /reports/{id}``: full replacement of reportData."""

    report_data: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("reportData", "report_data"),
    )


class ReportStatusSchema(CamelModel):
    """Lightweight polling view."""

    id: str
    status: str
    created_at: datetime
    updated_at: datetime


class ReportMetaSchema(ReportStatusSchema):
    """Report metadata without the analysis payload."""

    website: str
    options: str


class ReportSchema(ReportMetaSchema):
    """Complete report record."""

    report_data: dict[str, Any] | None = None


class PublicReportSchema(CamelModel):
    """Unauthenticated share view.

    Timestamps and payload are only present once the report completed.
    """

    id: str
    status: str
    website: str
    report_data: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReportListResponse(CamelModel):
    total: int
    reports: list[ReportMetaSchema]
