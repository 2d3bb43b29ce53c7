"""Tests for apps/auth/email_templates.py — OTP email content.

验证码邮件模板测试。
"""

from __future__ import annotations


class TestVerificationEmail:
    def test_contains_code_name_and_expiry(self):
        from apps.auth.email_templates import get_verification_email_content

        plain, html_body = get_verification_email_content("4821", "Ada", "SEOMaster", 10)

        for body in (plain, html_body):
            assert "4821" in body
            assert "Ada" in body
            assert "10 minutes" in body
        assert "Verify your email" in plain

    def test_name_is_escaped_in_html(self):
        """User-controlled names must not inject markup.

        用户名在 HTML 正文中需要转义。
        """
        from apps.auth.email_templates import get_verification_email_content

        plain, html_body = get_verification_email_content("4821", "<script>x</script>")

        assert "<script>" not in html_body
        assert "&lt;script&gt;" in html_body
        assert "<script>x</script>" in plain


class TestPasswordResetEmail:
    def test_reset_wording(self):
        from apps.auth.email_templates import get_password_reset_email_content

        plain, html_body = get_password_reset_email_content("7310", "Grace", "Acme SEO", 15)

        assert plain.startswith("Acme SEO - Reset your password")
        assert "7310" in html_body
        assert "15 minutes" in html_body
