# ==============================================================================
# 模块: report/api.py
# 功能: 白标报告 (Report) 模块的 RESTful API 端点定义
# 架构角色: 报告模块的对外接口层 (Controller 层), 挂载在 /api/reports 下:
#   POST   /reports              创建报告 (pending, 不分派)
#   GET    /reports              当前用户的报告列表 (元数据, 最新在前)
#   GET    /reports/public/{id}  公开分享视图 (无需认证)
#   GET    /reports/{id}         读取报告, ?reanalyze=true 强制重新分析,
#                                ?statusOnly=true 只返回状态 (轮询用)
#   PATCH  /reports/{id}         整体替换 reportData (保存人工覆盖)
#   DELETE /reports/{id}         硬删除
# 设计说明:
#   - 领域异常在本层转换为 HTTP 错误: 未找到/无权访问 404, 参数错误 400
#   - 单个报告的响应统一包装为 {"report": {...}}
#   - reportData 为空时从响应中省略; statusOnly 响应结构上不含 reportData
# ==============================================================================
"""Report API endpoints."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.dependencies import CurrentAuth
from settings import settings

from .dispatcher import AnalysisDispatcher, get_dispatcher
from .exceptions import ReportNotFoundError, ReportValidationError
from .models import STATUS_COMPLETED
from .schemas import (
    CreateReportRequest,
    PublicReportSchema,
    ReportListResponse,
    ReportMetaSchema,
    ReportSchema,
    ReportStatusSchema,
    UpdateReportRequest,
)
from .service import ReadMode, ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(
    dispatcher: AnalysisDispatcher = Depends(get_dispatcher),
) -> ReportService:
    return ReportService(dispatcher)


def _render(
    model: BaseModel,
    status_code: int = status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Serialize ``model`` as ``{"report": ...}`` in camelCase, omitting nulls."""
    content = {"report": model.model_dump(mode="json", by_alias=True, exclude_none=True)}
    content.update(extra)
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def _not_found(e: ReportNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _bad_request(e: ReportValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# --------------------------------------------------------------------------
# POST /reports - 创建报告
# --------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    request: CreateReportRequest,
    auth: CurrentAuth,
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    """Create a pending report. Analysis starts on the first read."""
    try:
        report = await service.create(auth.user_id, request.website, db, options=request.options)
    except ReportValidationError as e:
        raise _bad_request(e)
    return _render(
        ReportMetaSchema.model_validate(report),
        status_code=status.HTTP_201_CREATED,
        message="Report created successfully",
    )


# --------------------------------------------------------------------------
# GET /reports - 报告列表
# --------------------------------------------------------------------------
@router.get("", response_model=ReportListResponse)
async def list_reports(
    auth: CurrentAuth,
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    reports, total = await service.list_reports(auth.user_id, db)
    return ReportListResponse(
        total=total,
        reports=[ReportMetaSchema.model_validate(r) for r in reports],
    )


# --------------------------------------------------------------------------
# GET /reports/public/{report_id} - 公开分享视图
# 完成的报告附带 Cache-Control 头, 允许 CDN / 浏览器缓存
# --------------------------------------------------------------------------
@router.get("/public/{report_id}")
async def get_public_report(
    report_id: str,
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    try:
        public = await service.get_public(report_id, db)
    except ReportNotFoundError as e:
        raise _not_found(e)

    headers = None
    if public["status"] == STATUS_COMPLETED:
        headers = {"Cache-Control": f"public, max-age={settings.report_public_cache_max_age}"}
    return _render(PublicReportSchema.model_validate(public), headers=headers)


# --------------------------------------------------------------------------
# GET /reports/{report_id} - 读取报告 (可能触发分析分派)
# --------------------------------------------------------------------------
@router.get("/{report_id}")
async def get_report(
    report_id: str,
    auth: CurrentAuth,
    reanalyze: str | None = None,
    status_only_flag: str | None = Query(None, alias="statusOnly"),
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    """Read a report.

    A pending report, or any report with ``reanalyze=true``, is switched to
    ``processing`` and dispatched before the response is built.
    ``statusOnly=true`` limits the body to id, status and timestamps.
    Only the literal ``true`` enables either flag.
    """
    # 只有字面值 "true" 视为开启, 其他取值 (1, yes, foo) 一律视为关闭
    status_only = status_only_flag == "true"
    if reanalyze == "true":
        mode = ReadMode.REANALYZE
    elif status_only:
        mode = ReadMode.STATUS_ONLY
    else:
        mode = ReadMode.FULL

    try:
        report = await service.get(auth.user_id, report_id, db, mode=mode)
    except ReportNotFoundError as e:
        raise _not_found(e)

    if status_only:
        return _render(ReportStatusSchema.model_validate(report))
    return _render(ReportSchema.model_validate(report))


# --------------------------------------------------------------------------
# PATCH /reports/{report_id} - 保存 reportData (整体替换)
# --------------------------------------------------------------------------
@router.patch("/{report_id}")
async def update_report(
    report_id: str,
    request: UpdateReportRequest,
    auth: CurrentAuth,
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    try:
        report = await service.update(auth.user_id, report_id, request.report_data, db)
    except ReportValidationError as e:
        raise _bad_request(e)
    except ReportNotFoundError as e:
        raise _not_found(e)
    return _render(ReportSchema.model_validate(report), message="Report updated successfully")


# --------------------------------------------------------------------------
# DELETE /reports/{report_id} - 删除报告
# --------------------------------------------------------------------------
@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    auth: CurrentAuth,
    db: AsyncSession = Depends(get_session),
    service: ReportService = Depends(get_report_service),
):
    try:
        await service.delete(auth.user_id, report_id, db)
    except ReportNotFoundError as e:
        raise _not_found(e)
    return {"message": "Report deleted successfully"}
