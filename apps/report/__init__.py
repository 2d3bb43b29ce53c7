"""Report lifecycle module for SEOMaster.

报告模块包入口：REST 路由、分析分派器、客户端轮询与人工覆盖。
"""

from apps.report.api import router
from apps.report.dispatcher import AnalysisDispatcher, get_dispatcher
from apps.report.service import ReadMode, ReportService

__all__ = ["router", "AnalysisDispatcher", "get_dispatcher", "ReadMode", "ReportService"]
