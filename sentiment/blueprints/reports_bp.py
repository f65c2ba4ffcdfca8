"""Reports blueprint — HR view of reports, company status and analysis runs.

Endpoint groups (HR of the caller's company, or Admin with ?company=<id|name>):
  Employee reports     GET    /api/v1/reports/employees
                       GET    /api/v1/reports/employees/<code>
                       POST   /api/v1/reports/employees/<code>/regenerate
  Employee reset       DELETE /api/v1/reports/employees/<code>/responses
  Company status       GET    /api/v1/company/status
  Company report       GET    /api/v1/company/report
  Manual analysis      POST   /api/v1/company/analyze        (?async=true → 202)
  Analysis runs        GET    /api/v1/company/analysis-runs
                       GET    /api/v1/company/analysis-runs/<run_id>

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request

import sentiment.services.report_service as rs
from sentiment.blueprints import parse_bool_arg, parse_limit, register_error_handlers
from sentiment.core.exceptions import NotReadyError
from sentiment.middleware.role_required import require_role
from sentiment.models.analysis import AnalysisRun
from sentiment.models.company import Employee
from sentiment.services.access_guard import resolve_company_for
from sentiment.services.completion_service import company_status, is_complete
from sentiment.utils.errors import E, api_error

logger = logging.getLogger(__name__)

reports_bp = Blueprint("reports", __name__, url_prefix="/api/v1")
register_error_handlers(reports_bp)

_HR = (Employee.ROLE_HR, Employee.ROLE_ADMIN)


def _company_ref():
    """Optional company selector (only Admin may name another company)."""
    return request.args.get("company") or None


# ═════════════════════════════════════════════════════════════════════════
# Employee reports  (/api/v1/reports/employees)
# ═════════════════════════════════════════════════════════════════════════


@reports_bp.route("/reports/employees", methods=["GET"])
@require_role(*_HR)
def list_employees():
    """Non-HR employees with has_report / has_filled_form flags."""
    return jsonify(rs.list_employee_report_status(g.caller, _company_ref())), 200


@reports_bp.route("/reports/employees/<employee_code>", methods=["GET"])
@require_role(*_HR)
def get_employee_report(employee_code):
    """Latest individual report.

    404 bodies carry ``reason``: ``not_submitted`` or ``report_missing``
    (the latter can be fixed with the regenerate endpoint).
    """
    out = rs.get_individual_report(g.caller, employee_code)
    if not out["available"]:
        return api_error(
            E.NOT_FOUND, out["message"],
            details={"reason": out["reason"], "employee_id": out["employee_id"]},
        )
    return jsonify(out), 200


@reports_bp.route("/reports/employees/<employee_code>/regenerate", methods=["POST"])
@require_role(*_HR)
def regenerate_employee_report(employee_code):
    gateway = current_app.extensions["analysis_gateway"]
    return jsonify(rs.regenerate_individual_report(g.caller, employee_code, gateway=gateway)), 200


@reports_bp.route("/reports/employees/<employee_code>/responses", methods=["DELETE"])
@require_role(*_HR)
def reset_employee(employee_code):
    """Let one employee retake the survey (deletes the company report too)."""
    return jsonify(rs.reset_employee(g.caller, employee_code)), 200


# ═════════════════════════════════════════════════════════════════════════
# Company  (/api/v1/company)
# ═════════════════════════════════════════════════════════════════════════


@reports_bp.route("/company/status", methods=["GET"])
@require_role(*_HR)
def get_company_status():
    company = resolve_company_for(g.caller, _company_ref())
    return jsonify(company_status(company)), 200


@reports_bp.route("/company/report", methods=["GET"])
@require_role(*_HR)
def get_company_report():
    return jsonify(rs.get_company_report(g.caller, _company_ref())), 200


@reports_bp.route("/company/analyze", methods=["POST"])
@require_role(*_HR)
def analyze_company():
    """Manually run company analysis.

    Synchronous by default: failures come back as 503 (unavailable),
    504 (timeout) or 502 (rejected). With ``?async=true`` the run is
    scheduled in the background and 202 is returned with the run record.
    """
    caller = g.caller
    company = resolve_company_for(caller, _company_ref())
    status = is_complete(company.id)
    if not status.complete:
        raise NotReadyError(total=status.total, filled=status.filled)

    runner = current_app.extensions["analysis_runner"]
    if parse_bool_arg("async"):
        run = runner.schedule(
            company.id, trigger=AnalysisRun.TRIGGER_MANUAL, requested_by=caller.employee_code,
        )
        return jsonify(run), 202

    run = runner.run_now(company.id, requested_by=caller.employee_code)
    return jsonify(run), 200


@reports_bp.route("/company/analysis-runs", methods=["GET"])
@require_role(*_HR)
def list_analysis_runs():
    company = resolve_company_for(g.caller, _company_ref())
    runner = current_app.extensions["analysis_runner"]
    runs = runner.list_runs(company.id, status=request.args.get("status"), limit=parse_limit())
    return jsonify({"company_id": company.id, "items": runs, "total": len(runs)}), 200


@reports_bp.route("/company/analysis-runs/<int:run_id>", methods=["GET"])
@require_role(*_HR)
def get_analysis_run(run_id):
    company = resolve_company_for(g.caller, _company_ref())
    runner = current_app.extensions["analysis_runner"]
    return jsonify(runner.get_status(company.id, run_id)), 200
