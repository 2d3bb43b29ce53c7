"""Tests for apps/scheduler/jobs/otp_cleanup_job.py.

过期验证码清理任务测试。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

pytestmark = pytest.mark.integration


class TestOtpCleanupJob:
    @pytest.mark.asyncio
    async def test_deletes_only_expired_codes(self, session_factory):
        """Verify the job purges expired codes and reports the count.

        验证任务只删除过期验证码，并返回删除数量。
        """
        from apps.scheduler.jobs.otp_cleanup_job import run_otp_cleanup_job
        from core.models.otp import OTP_PURPOSE_EMAIL_VERIFICATION, OtpCode

        now = datetime.now(timezone.utc)
        async with session_factory() as session:
            session.add_all(
                [
                    OtpCode(
                        email="old@example.com",
                        code="1111",
                        purpose=OTP_PURPOSE_EMAIL_VERIFICATION,
                        expires_at=now - timedelta(hours=2),
                    ),
                    OtpCode(
                        email="fresh@example.com",
                        code="2222",
                        purpose=OTP_PURPOSE_EMAIL_VERIFICATION,
                        expires_at=now + timedelta(minutes=5),
                    ),
                ]
            )
            await session.commit()

        summary = await run_otp_cleanup_job()

        assert summary["status"] == "completed"
        assert summary["otp_codes_deleted"] == 1
        assert summary["duration_seconds"] >= 0
        assert "timestamp" in summary

        async with session_factory() as session:
            result = await session.execute(select(OtpCode.email))
            assert result.scalars().all() == ["fresh@example.com"]

    @pytest.mark.asyncio
    async def test_empty_table(self, db_engine):
        from apps.scheduler.jobs.otp_cleanup_job import run_otp_cleanup_job

        summary = await run_otp_cleanup_job()
        assert summary["otp_codes_deleted"] == 0
