# =============================================================================
# 模块: apps/report/client.py
# 功能: 报告 REST API 的异步客户端
# 架构角色: 客户端侧的数据访问层, 被 ReportPoller 与 ManualCheckEditor 使用。
# 设计决策:
#   1. 使用 httpx.AsyncClient, 延迟创建并复用连接
#   2. 令牌保存在客户端实例中: login() 写入, logout() 清除
#   3. 错误响应映射为领域异常:
#        401 -> AuthenticationError
#        404 -> ReportNotFoundError
#        400 -> ReportValidationError
#        其他非 2xx -> ReportClientError
# =============================================================================
"""Async client for the SEOMaster report API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .exceptions import (
    AuthenticationError,
    ReportClientError,
    ReportNotFoundError,
    ReportValidationError,
)

logger = logging.getLogger(__name__)


class ReportClient:
    """Async client for the report endpoints.

    Supports ``async with``.

    Attributes:
        base_url: Service address, e.g. ``http://localhost:8000``.
        token: Current bearer token, ``None`` when logged out.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """获取或创建 httpx 客户端"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("error") or body.get("message")
            if isinstance(detail, dict):
                detail = detail.get("message")
            if detail:
                return str(detail)
        return f"HTTP {response.status_code}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        client = self._get_client()
        response = await client.request(
            method, path, params=params, json=json, headers=self._headers()
        )
        if response.is_success:
            return response.json()

        message = self._error_message(response)
        if response.status_code == 401:
            raise AuthenticationError(message, status_code=401)
        if response.status_code == 404:
            raise ReportNotFoundError(message)
        if response.status_code == 400:
            raise ReportValidationError(message)
        raise ReportClientError(message, status_code=response.status_code)

    # ------------------------------------------------------------------
    # 会话
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in and keep the returned token for later calls."""
        data = await self._request(
            "POST", "/api/auth/login", json={"email": email, "password": password}
        )
        self.token = data["token"]
        return data

    def logout(self) -> None:
        """Forget the current token and any session cookie set by login."""
        self.token = None
        if self._client is not None:
            self._client.cookies.clear()

    # ------------------------------------------------------------------
    # 报告
    # ------------------------------------------------------------------
    async def create_report(self, website: str, options: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"website": website}
        if options is not None:
            payload["options"] = options
        data = await self._request("POST", "/api/reports", json=payload)
        return data["report"]

    async def list_reports(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/api/reports")
        return data["reports"]

    async def get_report(
        self,
        report_id: str,
        *,
        reanalyze: bool = False,
        status_only: bool = False,
    ) -> Dict[str, Any]:
        """Fetch a report.

        Args:
            report_id: Report ID.
            reanalyze: Force a new analysis.
            status_only: Only return id, status and timestamps.
        """
        params: Dict[str, Any] = {}
        if reanalyze:
            params["reanalyze"] = "true"
        if status_only:
            params["statusOnly"] = "true"
        data = await self._request("GET", f"/api/reports/{report_id}", params=params or None)
        return data["report"]

    async def update_report(self, report_id: str, report_data: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request(
            "PATCH", f"/api/reports/{report_id}", json={"reportData": report_data}
        )
        return data["report"]

    async def delete_report(self, report_id: str) -> None:
        await self._request("DELETE", f"/api/reports/{report_id}")

    async def get_public_report(self, report_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/api/reports/public/{report_id}")
        return data["report"]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ReportClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
