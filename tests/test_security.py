# tests/test_security.py
"""Tests for app/transport/security.py - identity extraction and hardening."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

from fastapi.security import HTTPAuthorizationCredentials

from app.transport.security import get_client_ip, get_tenant_id, get_user_id


# ============================================================================
# Identity
# ============================================================================

class TestGetUserId:
    def test_bearer_token_is_user_id(self):
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="emp_123")
        assert get_user_id(creds) == "emp_123"

    def test_missing_credentials(self):
        assert get_user_id(None) is None

    def test_blank_token(self):
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="   ")
        assert get_user_id(creds) is None


class TestGetTenantId:
    def test_header_value(self):
        assert get_tenant_id(" acme ") == "acme"

    def test_missing_or_blank(self):
        assert get_tenant_id(None) is None
        assert get_tenant_id("") is None


class TestClientIP:
    def test_direct_connection(self):
        request = MagicMock()
        request.client.host = "10.1.2.3"
        assert get_client_ip(request) == "10.1.2.3"

    def test_no_client(self):
        request = MagicMock()
        request.client = None
        assert get_client_ip(request) == "unknown"


# ============================================================================
# Security headers
# ============================================================================

class TestSecurityHeaders:
    @patch("app.transport.security.settings")
    def test_owasp_headers_present(self, mock_settings):
        mock_settings.is_production = False
        mock_settings.is_staging = False
        from app.transport.security import SecurityHeaders
        response = MagicMock()
        response.headers = {}
        SecurityHeaders.add_security_headers(response)
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"].startswith("no-store")
        assert "Content-Security-Policy" in response.headers

    @patch("app.transport.security.settings")
    def test_hsts_in_production(self, mock_settings):
        mock_settings.is_production = True
        mock_settings.is_staging = False
        from app.transport.security import SecurityHeaders
        response = MagicMock()
        response.headers = {}
        SecurityHeaders.add_security_headers(response)
        assert "Strict-Transport-Security" in response.headers

    @patch("app.transport.security.settings")
    def test_no_hsts_in_dev(self, mock_settings):
        mock_settings.is_production = False
        mock_settings.is_staging = False
        from app.transport.security import SecurityHeaders
        response = MagicMock()
        response.headers = {"Server": "uvicorn"}
        SecurityHeaders.add_security_headers(response)
        assert "Strict-Transport-Security" not in response.headers
        assert "Server" not in response.headers


# ============================================================================
# Header sanitization
# ============================================================================

class TestSanitizeHeaders:
    def test_authorization_redacted(self):
        from app.transport.security import sanitize_headers_for_logging
        result = sanitize_headers_for_logging({"Authorization": "Bearer super_admin_001"})
        assert result["Authorization"] == "***REDACTED***"

    def test_cookie_redacted(self):
        from app.transport.security import sanitize_headers_for_logging
        result = sanitize_headers_for_logging({"cookie": "session=abc"})
        assert result["cookie"] == "***REDACTED***"

    def test_normal_headers_preserved(self):
        from app.transport.security import sanitize_headers_for_logging
        result = sanitize_headers_for_logging({"X-Tenant-ID": "acme"})
        assert result["X-Tenant-ID"] == "acme"


# ============================================================================
# Error message sanitization
# ============================================================================

class TestSanitizeErrorMessage:
    def test_dev_shows_detail(self):
        from app.transport.security import sanitize_error_message
        err = ValueError("detailed info")
        assert "detailed info" in sanitize_error_message(err, is_production=False)

    def test_production_generic_message(self):
        from app.transport.security import sanitize_error_message
        err = ValueError("detailed info")
        result = sanitize_error_message(err, is_production=True)
        assert "detailed" not in result
        assert result == "Invalid input"

    def test_production_unknown_error_type(self):
        from app.transport.security import sanitize_error_message
        err = RuntimeError("internal")
        result = sanitize_error_message(err, is_production=True)
        assert result == "An error occurred"
