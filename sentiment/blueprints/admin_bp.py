"""Admin blueprint — company directory and cross-company report operations.

All endpoints require the Admin role. ``<company>`` is a numeric id or the
company name.

Endpoints:
    GET  /api/v1/admin/companies
    POST /api/v1/admin/companies
    GET  /api/v1/admin/companies/<company>/employees
    POST /api/v1/admin/companies/<company>/employees
    GET  /api/v1/admin/companies/<company>/report/status
    GET  /api/v1/admin/companies/<company>/report
    POST /api/v1/admin/companies/<company>/reset?onlyFilled=true
    GET  /api/v1/admin/companies/<company>/feedback
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

import sentiment.services.directory_service as ds
import sentiment.services.feedback_service as fs
import sentiment.services.report_service as rs
from sentiment.blueprints import parse_bool_arg, register_error_handlers
from sentiment.middleware.role_required import require_role
from sentiment.models.company import Employee
from sentiment.services.access_guard import resolve_company_for

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")
register_error_handlers(admin_bp)


# ── Companies ─────────────────────────────────────────────────────────────────


@admin_bp.route("/companies", methods=["GET"])
@require_role(Employee.ROLE_ADMIN)
def list_companies():
    items = ds.list_companies()
    return jsonify({"items": items, "total": len(items)}), 200


@admin_bp.route("/companies", methods=["POST"])
@require_role(Employee.ROLE_ADMIN)
def create_company():
    data = request.get_json(silent=True) or {}
    return jsonify(ds.create_company(data)), 201


# ── Employees ─────────────────────────────────────────────────────────────────


@admin_bp.route("/companies/<company>/employees", methods=["GET"])
@require_role(Employee.ROLE_ADMIN)
def list_employees(company):
    target = resolve_company_for(g.caller, company)
    items = ds.list_employees(target.id)
    return jsonify({"company_id": target.id, "company_name": target.name,
                    "items": items, "total": len(items)}), 200


@admin_bp.route("/companies/<company>/employees", methods=["POST"])
@require_role(Employee.ROLE_ADMIN)
def create_employee(company):
    target = resolve_company_for(g.caller, company)
    data = request.get_json(silent=True) or {}
    return jsonify(ds.create_employee(target.id, data)), 201


# ── Reports ───────────────────────────────────────────────────────────────────


@admin_bp.route("/companies/<company>/report/status", methods=["GET"])
@require_role(Employee.ROLE_ADMIN)
def company_report_status(company):
    return jsonify(rs.company_report_status(g.caller, company)), 200


@admin_bp.route("/companies/<company>/report", methods=["GET"])
@require_role(Employee.ROLE_ADMIN)
def company_report(company):
    return jsonify(rs.get_company_report(g.caller, company)), 200


@admin_bp.route("/companies/<company>/reset", methods=["POST"])
@require_role(Employee.ROLE_ADMIN)
def reset_company(company):
    """Clear answers and reports so the company can start a new survey cycle."""
    only_filled = parse_bool_arg("onlyFilled")
    return jsonify(rs.reset_company(g.caller, company, only_filled=only_filled)), 200


# ── HR feedback ───────────────────────────────────────────────────────────────


@admin_bp.route("/companies/<company>/feedback", methods=["GET"])
@require_role(Employee.ROLE_ADMIN)
def company_feedback(company):
    """Questionnaire answers of the company's HR staff."""
    return jsonify({"success": True, **fs.company_feedback(g.caller, company)}), 200
