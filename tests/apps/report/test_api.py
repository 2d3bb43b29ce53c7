"""Tests for apps/report/api.py — report endpoints.

报告 API 端点测试。分析分派由 fake_dispatcher 记录，不会真正执行。

Run with: pytest tests/apps/report/test_api.py -v
"""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import status
from fastapi.testclient import TestClient


def _create(client: TestClient, headers: dict, website: str = "https://example.com") -> dict:
    response = client.post("/api/reports", json={"website": website}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["report"]


def _force_state(client: TestClient, report_id: str, state: str, report_data: Any = None) -> None:
    """Write a report's status directly, inside the app's event loop."""

    async def _write():
        from sqlalchemy import update

        from apps.report.models import Report
        from core.database import session_scope

        async with session_scope() as session:
            await session.execute(
                update(Report)
                .where(Report.id == report_id)
                .values(status=state, report_data=report_data)
            )

    client.portal.call(_write)


class TestAuthRequired:
    def test_endpoints_require_token(self, client: TestClient):
        assert client.get("/api/reports").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.post("/api/reports", json={"website": "x"}).status_code == status.HTTP_401_UNAUTHORIZED
        assert client.get("/api/reports/abc").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.delete("/api/reports/abc").status_code == status.HTTP_401_UNAUTHORIZED

    def test_invalid_token_is_401(self, client: TestClient):
        response = client.get("/api/reports", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestCreateReport:
    """POST /api/reports.

    创建报告端点测试。
    """

    def test_create_returns_pending_metadata(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        response = client.post(
            "/api/reports", json={"website": "https://example.com"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["message"] == "Report created successfully"
        report = body["report"]
        assert report["status"] == "pending"
        assert report["website"] == "https://example.com"
        assert report["options"] == "Default"
        assert {"id", "createdAt", "updatedAt"} <= report.keys()
        assert "reportData" not in report
        assert fake_dispatcher.calls == []

    def test_null_options_use_default(self, client: TestClient, auth_headers: dict):
        response = client.post(
            "/api/reports", json={"website": "https://example.com", "options": None}, headers=auth_headers
        )
        assert response.json()["report"]["options"] == "Default"

    def test_missing_website_is_400(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/reports", json={}, headers=auth_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Website URL is required"

    def test_non_string_website_is_400(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/reports", json={"website": 123}, headers=auth_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestListReports:
    def test_list_is_scoped_and_has_total(
        self, client: TestClient, auth_headers: dict, other_headers: dict
    ):
        _create(client, auth_headers, "https://one.example")
        _create(client, auth_headers, "https://two.example")
        _create(client, other_headers, "https://grace.example")

        response = client.get("/api/reports", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["total"] == 2
        assert {r["website"] for r in body["reports"]} == {"https://one.example", "https://two.example"}
        assert all("reportData" not in r for r in body["reports"])

    def test_empty_list(self, client: TestClient, auth_headers: dict):
        response = client.get("/api/reports", headers=auth_headers)
        assert response.json() == {"total": 0, "reports": []}


class TestGetReport:
    """GET /api/reports/{id} and its dispatch side effect.

    读取报告端点测试：首次读取触发分派，statusOnly 与 reanalyze 参数。
    """

    def test_first_read_starts_analysis(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        created = _create(client, auth_headers)

        response = client.get(f"/api/reports/{created['id']}", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        report = response.json()["report"]
        assert report["status"] == "processing"
        assert "reportData" not in report
        assert fake_dispatcher.calls == [(created["id"], "https://example.com", 1)]

    def test_second_read_does_not_redispatch(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        created = _create(client, auth_headers)

        client.get(f"/api/reports/{created['id']}", headers=auth_headers)
        client.get(f"/api/reports/{created['id']}", headers=auth_headers)

        assert len(fake_dispatcher.calls) == 1

    def test_status_only_omits_payload(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 90})

        response = client.get(
            f"/api/reports/{created['id']}", params={"statusOnly": "true"}, headers=auth_headers
        )

        report = response.json()["report"]
        assert set(report) == {"id", "status", "createdAt", "updatedAt"}
        assert report["status"] == "completed"

    def test_full_read_of_completed_report(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 90})

        report = client.get(f"/api/reports/{created['id']}", headers=auth_headers).json()["report"]

        assert report["reportData"] == {"score": 90}
        assert fake_dispatcher.calls == []

    def test_reanalyze_clears_result_and_dispatches(
        self, client: TestClient, auth_headers: dict, fake_dispatcher
    ):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 90})

        response = client.get(
            f"/api/reports/{created['id']}", params={"reanalyze": "true"}, headers=auth_headers
        )

        report = response.json()["report"]
        assert report["status"] == "processing"
        assert "reportData" not in report
        assert len(fake_dispatcher.calls) == 1

    def test_reanalyze_with_status_only(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        """reanalyze decides whether to dispatch, statusOnly decides the shape."""
        created = _create(client, auth_headers)

        response = client.get(
            f"/api/reports/{created['id']}",
            params={"reanalyze": "true", "statusOnly": "true"},
            headers=auth_headers,
        )

        assert set(response.json()["report"]) == {"id", "status", "createdAt", "updatedAt"}
        assert len(fake_dispatcher.calls) == 1

    @pytest.mark.parametrize(
        "state, report_data",
        [("completed", {"score": 90}), ("failed", {"error": "Backend returned status 500"})],
    )
    def test_terminal_status_is_stable_under_status_polls(
        self, client: TestClient, auth_headers: dict, fake_dispatcher, state, report_data
    ):
        """Repeated statusOnly reads of a finished report change nothing.

        终态报告的多次状态轮询不改变状态、不返回 reportData、不触发分派。
        """
        created = _create(client, auth_headers)
        _force_state(client, created["id"], state, report_data)

        for _ in range(3):
            response = client.get(
                f"/api/reports/{created['id']}", params={"statusOnly": "true"}, headers=auth_headers
            )
            report = response.json()["report"]
            assert report["status"] == state
            assert "reportData" not in report

        full = client.get(f"/api/reports/{created['id']}", headers=auth_headers).json()["report"]
        assert full["reportData"] == report_data
        assert fake_dispatcher.calls == []

    @pytest.mark.parametrize("value", ["1", "yes", "True", "foo"])
    def test_only_literal_true_enables_flags(
        self, client: TestClient, auth_headers: dict, fake_dispatcher, value
    ):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 90})

        response = client.get(
            f"/api/reports/{created['id']}",
            params={"reanalyze": value, "statusOnly": value},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        report = response.json()["report"]
        assert report["status"] == "completed"
        assert report["reportData"] == {"score": 90}
        assert fake_dispatcher.calls == []

    def test_failed_report_exposes_error(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "failed", {"error": "Backend returned status 500"})

        report = client.get(f"/api/reports/{created['id']}", headers=auth_headers).json()["report"]

        assert report["status"] == "failed"
        assert report["reportData"]["error"] == "Backend returned status 500"

    def test_other_users_report_is_404(
        self, client: TestClient, auth_headers: dict, other_headers: dict, fake_dispatcher
    ):
        created = _create(client, auth_headers)

        response = client.get(f"/api/reports/{created['id']}", headers=other_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Report not found or access denied"
        assert fake_dispatcher.calls == []

    def test_unknown_report_is_404(self, client: TestClient, auth_headers: dict):
        response = client.get("/api/reports/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestUpdateReport:
    def test_patch_replaces_report_data(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 90, "title": {"ok": True}})

        new_data = {"score": 90, "title": {"ok": True}, "manualChecks": {"title": False}}
        response = client.patch(
            f"/api/reports/{created['id']}", json={"reportData": new_data}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Report updated successfully"
        assert body["report"]["reportData"] == new_data
        assert body["report"]["status"] == "completed"

    def test_patch_without_report_data_is_400(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        response = client.patch(f"/api/reports/{created['id']}", json={}, headers=auth_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_patch_failed_report_keeps_error(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "failed", {"error": "Backend returned status 502"})

        response = client.patch(
            f"/api/reports/{created['id']}", json={"reportData": {"title": "x"}}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Only completed reports can be edited"
        report = client.get(f"/api/reports/{created['id']}", headers=auth_headers).json()["report"]
        assert report["status"] == "failed"
        assert report["reportData"] == {"error": "Backend returned status 502"}

    def test_patch_processing_report_is_400(
        self, client: TestClient, auth_headers: dict, fake_dispatcher
    ):
        created = _create(client, auth_headers)
        client.get(f"/api/reports/{created['id']}", headers=auth_headers)

        response = client.patch(
            f"/api/reports/{created['id']}", json={"reportData": {"title": "x"}}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        report = client.get(f"/api/reports/{created['id']}", headers=auth_headers).json()["report"]
        assert report["status"] == "processing"
        assert "reportData" not in report
        assert len(fake_dispatcher.calls) == 1

    def test_patch_other_users_report_is_404(
        self, client: TestClient, auth_headers: dict, other_headers: dict
    ):
        created = _create(client, auth_headers)
        response = client.patch(
            f"/api/reports/{created['id']}", json={"reportData": {"x": 1}}, headers=other_headers
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDeleteReport:
    def test_delete_then_404(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)

        response = client.delete(f"/api/reports/{created['id']}", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Report deleted successfully"}

        again = client.get(f"/api/reports/{created['id']}", headers=auth_headers)
        assert again.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_other_users_report_is_404(
        self, client: TestClient, auth_headers: dict, other_headers: dict
    ):
        created = _create(client, auth_headers)

        response = client.delete(f"/api/reports/{created['id']}", headers=other_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert client.get("/api/reports", headers=auth_headers).json()["total"] == 1


class TestPublicReport:
    """GET /api/reports/public/{id} — unauthenticated share view.

    公开分享视图测试。
    """

    def test_pending_report_minimal_view(self, client: TestClient, auth_headers: dict, fake_dispatcher):
        created = _create(client, auth_headers)

        response = client.get(f"/api/reports/public/{created['id']}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["report"] == {
            "id": created["id"],
            "status": "pending",
            "website": "https://example.com",
        }
        assert "Cache-Control" not in response.headers
        assert fake_dispatcher.calls == []

    def test_completed_report_is_cacheable(self, client: TestClient, auth_headers: dict):
        created = _create(client, auth_headers)
        _force_state(client, created["id"], "completed", {"score": 64})

        response = client.get(f"/api/reports/public/{created['id']}")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["Cache-Control"] == "public, max-age=3600"
        report = response.json()["report"]
        assert report["reportData"] == {"score": 64}
        assert "createdAt" in report
        assert "userId" not in report

    def test_unknown_report_is_404(self, client: TestClient):
        response = client.get("/api/reports/public/missing")
        assert response.status_code == status.HTTP_404_NOT_FOUND
