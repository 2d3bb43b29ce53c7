# ==============================================================================
# 模块: report/exceptions.py
# 功能: 报告生命周期的领域异常
# 设计说明:
#   - 服务端: ReportNotFoundError (404, 不存在与无权访问不作区分),
#             ReportValidationError (400), AnalysisDispatchError (仅记录为 failed)
#   - 客户端 (ReportClient / ReportPoller): AuthenticationError (401),
#             PollingTimeoutError, ReportGenerationFailed, ReportClientError
# ==============================================================================
"""Report lifecycle exceptions."""
from __future__ import annotations


class ReportError(Exception):
    """Base class for report errors."""


class ReportNotFoundError(ReportError):
    """The report does not exist or is not owned by the caller."""

    def __init__(self, message: str = "Report not found or access denied"):
        super().__init__(message)


class ReportValidationError(ReportError):
    """Malformed input to a report operation."""


class AnalysisDispatchError(ReportError):
    """The analysis service failed, timed out, or returned a malformed body.

    Never surfaced to the request that triggered the dispatch; the message
    is stored as ``report_data["error"]``.
    """


class ReportClientError(ReportError):
    """Unexpected HTTP response received by :class:`ReportClient`."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ReportClientError):
    """The API rejected the client's credentials (401)."""


class PollingTimeoutError(ReportError):
    """The poller gave up before the report reached a terminal state."""

    def __init__(
        self,
        message: str = "Report generation is taking too long. Please try again later.",
    ):
        super().__init__(message)


class ReportGenerationFailed(ReportError):
    """The report reached ``failed``; carries the stored error message."""

    def __init__(self, message: str = "Report generation failed", report: dict | None = None):
        super().__init__(message)
        self.report = report
