"""Survey blueprint — questions, submission and per-employee status.

Endpoints:
    GET  /api/v1/survey/forms/<form_id>      questions ordered by number
    POST /api/v1/survey/responses            submit the caller's answers
    GET  /api/v1/employees/me/status         caller's own submission status
    GET  /api/v1/employees/<code>/status     self, HR of the same company, or Admin

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request

import sentiment.services.submission_service as ss
from sentiment.blueprints import register_error_handlers
from sentiment.core.exceptions import ForbiddenError, ValidationError
from sentiment.middleware.role_required import require_caller

logger = logging.getLogger(__name__)

survey_bp = Blueprint("survey", __name__, url_prefix="/api/v1")
register_error_handlers(survey_bp)


@survey_bp.route("/survey/forms/<int:form_id>", methods=["GET"])
@require_caller
def get_form(form_id):
    """Return a form and its questions."""
    return jsonify(ss.get_form_questions(form_id)), 200


@survey_bp.route("/survey/responses", methods=["POST"])
@require_caller
def submit_responses():
    """Save the caller's answers as one batch.

    Body:
        {"form_id": 1, "answers": [{"form_question_id": 3, "answer_text": "..."}]}

    Returns 201 even when the filled flag could not be updated; the body's
    ``filled_flag_updated`` tells the two cases apart.
    """
    caller = g.caller
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body is required")

    target = data.get("employee_id")
    if target is not None and str(target) != caller.employee_code:
        raise ForbiddenError("Employees can only submit their own survey")
    if data.get("form_id") is None:
        raise ValidationError("form_id is required", details={"form_id": "required"})

    result = ss.submit(
        caller.employee_code,
        data.get("form_id"),
        data.get("answers"),
        runner=current_app.extensions["analysis_runner"],
    )
    return jsonify(result.to_dict()), 201


@survey_bp.route("/employees/me/status", methods=["GET"])
@require_caller
def my_status():
    return jsonify(ss.submission_status(g.caller)), 200


@survey_bp.route("/employees/<employee_code>/status", methods=["GET"])
@require_caller
def employee_status(employee_code):
    return jsonify(ss.submission_status(g.caller, employee_code)), 200
