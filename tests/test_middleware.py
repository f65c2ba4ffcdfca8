"""Tests for the JWT service and structured logging formatters."""

import json
import logging
import time

import jwt
import pytest

from sentiment.middleware.logging_config import JSONFormatter, ReadableFormatter
from sentiment.services.jwt_service import decode_access_token, decode_token, generate_access_token


def _record(msg="hello", **extra):
    record = logging.LogRecord("sentiment.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJwtService:
    def test_roundtrip_claims(self):
        token = generate_access_token("E-1", "HR", 7)
        payload = decode_access_token(token)
        assert payload["sub"] == "E-1"
        assert payload["role"] == "HR"
        assert payload["company_id"] == 7
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_company_claim_optional(self):
        payload = decode_access_token(generate_access_token("ADM", "Admin", None))
        assert "company_id" not in payload

    def test_wrong_type_rejected(self):
        token = generate_access_token("E-1", "Employee", 1)
        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token, expected_type="refresh")

    def test_expired(self, app):
        original = app.config.get("JWT_ACCESS_EXPIRES")
        app.config["JWT_ACCESS_EXPIRES"] = -10
        try:
            token = generate_access_token("E-1", "Employee", 1)
        finally:
            if original is None:
                app.config.pop("JWT_ACCESS_EXPIRES")
            else:
                app.config["JWT_ACCESS_EXPIRES"] = original
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_missing_subject(self, app):
        token = jwt.encode(
            {"type": "access", "exp": int(time.time()) + 60},
            app.config["JWT_SECRET_KEY"],
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_expired_token_over_http(self, app, client, make):
        company = make.company()
        emp = make.employee(company)
        app.config["JWT_ACCESS_EXPIRES"] = -10
        try:
            token = generate_access_token(emp.employee_code, emp.role, company.id)
        finally:
            app.config.pop("JWT_ACCESS_EXPIRES")
        res = client.get("/api/v1/employees/me/status", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token expired"


class TestFormatters:
    def test_json_includes_context_fields(self):
        line = JSONFormatter().format(_record(company_id=3, run_id=11, employee_id="E-1"))
        entry = json.loads(line)
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert (entry["company_id"], entry["run_id"], entry["employee_id"]) == (3, 11, "E-1")
        assert "analysis_endpoint" not in entry

    def test_readable_shows_company(self):
        line = ReadableFormatter().format(_record(company_id=3, duration_ms=12.3))
        assert "[company=3]" in line
        assert "[12ms]" in line
