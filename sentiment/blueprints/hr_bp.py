"""HR blueprint — HR questionnaire, HR-scoped employee creation and experience feedback.

Endpoints:
    GET  /api/v1/hr/feedback/questions     HR
    GET  /api/v1/hr/feedback/responses     HR      → {hasSubmitted, count}
    POST /api/v1/hr/feedback/responses     HR      {responses: [{question_id, option_id, response_text}]}
    POST /api/v1/hr/employees              HR      adds to the caller's own company
    POST /api/v1/feedback                  HR, Manager  {satisfactionPercent, payWillingness}
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

import sentiment.services.directory_service as ds
import sentiment.services.feedback_service as fs
from sentiment.blueprints import register_error_handlers
from sentiment.middleware.role_required import require_caller, require_role
from sentiment.models.company import Employee

logger = logging.getLogger(__name__)

hr_bp = Blueprint("hr", __name__, url_prefix="/api/v1")
register_error_handlers(hr_bp)


# ── Questionnaire ─────────────────────────────────────────────────────────────


@hr_bp.route("/hr/feedback/questions", methods=["GET"])
@require_role(Employee.ROLE_HR)
def feedback_questions():
    return jsonify({"success": True, "questions": fs.list_feedback_questions()}), 200


@hr_bp.route("/hr/feedback/responses", methods=["GET"])
@require_role(Employee.ROLE_HR)
def feedback_status():
    return jsonify({"success": True, **fs.feedback_submission_status(g.caller)}), 200


@hr_bp.route("/hr/feedback/responses", methods=["POST"])
@require_role(Employee.ROLE_HR)
def submit_feedback():
    data = request.get_json(silent=True) or {}
    return jsonify(fs.submit_hr_feedback(g.caller, data.get("responses"))), 201


# ── Employees ─────────────────────────────────────────────────────────────────


@hr_bp.route("/hr/employees", methods=["POST"])
@require_role(Employee.ROLE_HR)
def add_employee():
    data = request.get_json(silent=True) or {}
    result = ds.add_company_employee(g.caller, data)
    return jsonify(result), 201 if result["created"] else 200


# ── Experience feedback ───────────────────────────────────────────────────────


@hr_bp.route("/feedback", methods=["POST"])
@require_caller
def experience_feedback():
    data = request.get_json(silent=True) or {}
    return jsonify(fs.submit_experience_feedback(g.caller, data)), 201
