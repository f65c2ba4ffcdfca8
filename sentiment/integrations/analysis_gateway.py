"""
Client for the external analysis service.

Nothing else in the codebase talks HTTP to the service; services and
blueprints go through ``app.extensions["analysis_gateway"]``.

Endpoints used:
  POST /analyze            {employeeId, company, answers: {q<N>: {question, answer}}}
  POST /analyze-company    {companyId}
  POST /regenerate-report  {employeeId, company}
  GET  /health

The service stores the reports it writes. A successful call only means the
service accepted and finished the work; callers read the rows afterwards.

Failures are raised as one of three kinds:
  unreachable (refused, DNS, connect timeout)  AnalysisUnavailableError
  read timeout                                 AnalysisTimeoutError
  non-2xx answer                               AnalysisRejectedError

There are no retries. A single analysis takes minutes, and the orchestrator
records per-employee failures instead. Tests pass a MagicMock ``session``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import requests

from sentiment.core.exceptions import (
    AnalysisRejectedError,
    AnalysisTimeoutError,
    AnalysisUnavailableError,
)

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/analyze"
ANALYZE_COMPANY_PATH = "/analyze-company"
REGENERATE_PATH = "/regenerate-report"
HEALTH_PATH = "/health"

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}
_DETAIL_LIMIT = 500


@dataclass
class GatewayResult:
    ok: bool
    status_code: int | None
    data: dict | list | None = field(default=None)
    error: str | None = None
    duration_ms: int = 0


def _rejection_detail(resp) -> str | None:
    """The service's ``error`` (or ``message``) field, else the raw body text."""
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:_DETAIL_LIMIT] or None
    if not isinstance(body, dict):
        return None
    detail = body.get("error") or body.get("message")
    return str(detail)[:_DETAIL_LIMIT] if detail else None


def _json_or_empty(resp):
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


class AnalysisGateway:
    def __init__(
        self,
        base_url: str,
        timeout: float = 180,
        health_timeout: float = 5,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _call(self, method: str, path: str, body: dict | None = None, timeout: float | None = None) -> GatewayResult:
        """Send one request and translate transport failures into analysis errors."""
        url = self.base_url + path
        timeout = timeout or self.timeout
        log_extra = {"analysis_endpoint": path}
        options = {"headers": _JSON_HEADERS, "timeout": timeout}
        if body is not None:
            options["json"] = body

        started = time.perf_counter()
        try:
            resp = self.session.request(method, url, **options)
        except requests.ConnectionError as exc:
            # ConnectTimeout lands here too: the connection was never accepted.
            logger.warning("Cannot reach analysis service at %s: %s", url, str(exc)[:300], extra=log_extra)
            raise AnalysisUnavailableError(
                f"Analysis service is not reachable at {self.base_url}", endpoint=path,
            ) from exc
        except requests.Timeout as exc:
            logger.warning("No answer from %s within %ss", url, timeout, extra=log_extra)
            raise AnalysisTimeoutError(
                f"Analysis service did not respond within {timeout:g}s", endpoint=path, timeout=timeout,
            ) from exc
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, str(exc)[:300], extra=log_extra)
            raise AnalysisUnavailableError(
                f"Analysis service request failed: {str(exc)[:200]}", endpoint=path,
            ) from exc

        log_extra["duration_ms"] = elapsed_ms = int((time.perf_counter() - started) * 1000)
        if not resp.ok:
            detail = _rejection_detail(resp)
            logger.warning("%s %s answered %d: %s", method, path, resp.status_code, detail, extra=log_extra)
            raise AnalysisRejectedError(
                f"Analysis service returned HTTP {resp.status_code} for {path}",
                endpoint=path, status_code=resp.status_code, detail=detail,
            )

        logger.info("%s %s answered %d", method, path, resp.status_code, extra=log_extra)
        return GatewayResult(True, resp.status_code, _json_or_empty(resp), None, elapsed_ms)

    def analyze_employee(self, payload: dict) -> GatewayResult:
        """Phase 1 for one employee; ``payload`` is built by the orchestrator."""
        return self._call("POST", ANALYZE_PATH, payload)

    def analyze_company(self, company_id: int) -> GatewayResult:
        return self._call("POST", ANALYZE_COMPANY_PATH, {"companyId": company_id})

    def regenerate_report(self, employee_code: str, company_name: str | None) -> GatewayResult:
        return self._call("POST", REGENERATE_PATH, {"employeeId": employee_code, "company": company_name})

    def health(self) -> GatewayResult:
        """GET /health with the short timeout. Failures come back as ``ok=False``."""
        try:
            return self._call("GET", HEALTH_PATH, timeout=self.health_timeout)
        except AnalysisRejectedError as exc:
            return GatewayResult(False, exc.status_code, error=str(exc))
        except (AnalysisUnavailableError, AnalysisTimeoutError) as exc:
            return GatewayResult(False, None, error=str(exc))
