"""Survey submission — atomic answer batch, filled flag, completion trigger.

Rules:
  - All answer rows of one submission are inserted in a single transaction;
    either every row is visible afterwards or none is.
  - One batch per employee and cycle. Stored answers, not the filled flag,
    decide whether the employee already submitted; the unique
    (employee_id, form_question_id) constraint closes concurrent races.
  - A retry after a failed flag write repairs the flag, runs the completion
    check, and is still answered with ConflictError.
  - ``is_filled`` is committed separately. If that commit fails the
    submission still succeeds, the failure is logged at ERROR and the
    result carries ``filled_flag_updated=False``.
  - Orchestration is handed to the AnalysisRunner and never raises into
    the submission response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import exists, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sentiment.core.exceptions import ConflictError, NotFoundError, ValidationError
from sentiment.models import db
from sentiment.models.analysis import AnalysisRun
from sentiment.models.company import Employee
from sentiment.models.survey import FormQuestion, SurveyForm, SurveyResponse
from sentiment.services.access_guard import get_employee_for_caller
from sentiment.services.completion_service import CompletionStatus, is_complete

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""

    employee_id: str
    company_id: int
    saved: int
    filled_flag_updated: bool
    completion: CompletionStatus | None = None
    analysis_run: dict | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "message": "Responses saved successfully",
            "employee_id": self.employee_id,
            "saved": self.saved,
            "filled_flag_updated": self.filled_flag_updated,
            "completion": self.completion.to_dict() if self.completion else None,
            "analysis_scheduled": self.analysis_run is not None,
            "analysis_run": self.analysis_run,
            "warnings": self.warnings,
        }


def get_form_questions(form_id: int) -> dict:
    """Form with its questions ordered by question number.

    Raises:
        NotFoundError: Unknown form.
    """
    form = db.session.get(SurveyForm, form_id)
    if form is None:
        raise NotFoundError(resource="SurveyForm", resource_id=form_id)
    questions = form.questions.all()
    questions.sort(key=lambda q: (q.master_question.question_number, q.id))
    d = form.to_dict()
    d["questions"] = [q.to_dict() for q in questions]
    return d


def _validate_answers(form_id: int, answers) -> list[dict]:
    """Normalise answer dicts or raise ValidationError."""
    if not isinstance(answers, list) or not answers:
        raise ValidationError("answers must be a non-empty list", details={"answers": "required"})

    valid_ids = set(db.session.execute(
        select(FormQuestion.id).where(FormQuestion.form_id == form_id)
    ).scalars().all())

    rows = []
    errors = {}
    seen = set()
    for idx, item in enumerate(answers):
        if not isinstance(item, dict):
            errors[str(idx)] = "answer must be an object"
            continue
        try:
            fq_id = int(item.get("form_question_id"))
        except (TypeError, ValueError):
            errors[str(idx)] = "form_question_id is required"
            continue
        if fq_id not in valid_ids:
            errors[str(idx)] = f"form_question_id {fq_id} does not belong to form {form_id}"
            continue
        if fq_id in seen:
            errors[str(idx)] = f"form_question_id {fq_id} answered twice"
            continue

        answer_text = item.get("answer_text")
        answer_choice = item.get("answer_choice")
        answer_text = str(answer_text).strip() if answer_text is not None else None
        answer_choice = str(answer_choice).strip() if answer_choice is not None else None
        if not answer_text and not answer_choice:
            errors[str(idx)] = "answer_text or answer_choice is required"
            continue

        seen.add(fq_id)
        rows.append({
            "form_question_id": fq_id,
            "answer_text": answer_text or None,
            "answer_choice": answer_choice or None,
        })

    if errors:
        raise ValidationError("One or more answers are invalid", details=errors)
    return rows


def _has_answers(employee_pk: int) -> bool:
    return db.session.execute(
        select(exists().where(SurveyResponse.employee_id == employee_pk))
    ).scalar()


def _set_filled(result: SubmissionResult, employee_pk: int, log_extra: dict) -> bool:
    """Commit ``is_filled=True``. A failure is logged and recorded on ``result``."""
    try:
        db.session.execute(
            update(Employee).where(Employee.id == employee_pk).values(is_filled=True)
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        result.filled_flag_updated = False
        result.warnings.append("Answers saved but the submission flag could not be updated")
        logger.error(
            "Answers saved but is_filled update failed for %s", result.employee_id,
            exc_info=True, extra=log_extra,
        )
        return False
    return True


def _check_completion(result: SubmissionResult, runner, log_extra: dict) -> None:
    result.completion = is_complete(result.company_id)
    if not result.completion.complete or runner is None:
        return
    logger.info("Company complete; scheduling analysis", extra=log_extra)
    try:
        result.analysis_run = runner.schedule(result.company_id, trigger=AnalysisRun.TRIGGER_AUTO)
    except SQLAlchemyError:
        db.session.rollback()
        result.warnings.append("Analysis could not be scheduled")
        logger.error("Scheduling company analysis failed", exc_info=True, extra=log_extra)


def _already_submitted(employee: Employee, runner, log_extra: dict) -> ConflictError:
    """Conflict for a second batch; repairs a filled flag left unset by an earlier failure."""
    details = {"employee_id": employee.employee_code}
    if not employee.is_filled:
        logger.warning("Answers stored but employee not marked filled; repairing", extra=log_extra)
        repair = SubmissionResult(
            employee_id=employee.employee_code,
            company_id=employee.company_id,
            saved=0,
            filled_flag_updated=True,
        )
        if _set_filled(repair, employee.id, log_extra):
            _check_completion(repair, runner, log_extra)
        details["filled_flag_repaired"] = repair.filled_flag_updated
        details["analysis_scheduled"] = repair.analysis_run is not None
    return ConflictError("Survey already submitted for this cycle", details=details)


def submit(employee_code: str, form_id, answers, *, runner=None) -> SubmissionResult:
    """Persist one employee's survey answers.

    Args:
        employee_code: Submitting employee (already authorised by the caller).
        form_id:       Survey form id.
        answers:       ``[{"form_question_id", "answer_text" | "answer_choice"}]``
        runner:        AnalysisRunner; when given and the company becomes
                       complete, a company analysis run is scheduled.

    Returns:
        SubmissionResult.

    Raises:
        NotFoundError:   Unknown employee or form.
        ValidationError: Malformed payload.
        ConflictError:   The employee already has answers stored this cycle.
        SQLAlchemyError: The answer batch could not be stored (nothing saved).
    """
    employee = db.session.execute(
        select(Employee).where(Employee.employee_code == employee_code)
    ).scalar_one_or_none()
    if employee is None:
        raise NotFoundError(resource="Employee", resource_id=employee_code)
    try:
        form_id = int(form_id)
    except (TypeError, ValueError):
        raise ValidationError("form_id must be an integer", details={"form_id": "invalid"}) from None
    if db.session.get(SurveyForm, form_id) is None:
        raise NotFoundError(resource="SurveyForm", resource_id=form_id)

    employee_pk = employee.id
    company_id = employee.company_id
    log_extra = {"company_id": company_id, "employee_id": employee_code}
    if employee.is_filled or _has_answers(employee_pk):
        raise _already_submitted(employee, runner, log_extra)

    rows = _validate_answers(form_id, answers)

    # ── 1. Answer batch (all-or-nothing) ─────────────────────────────────
    try:
        db.session.execute(
            insert(SurveyResponse),
            [{**row, "employee_id": employee_pk, "form_id": form_id} for row in rows],
        )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _has_answers(employee_pk):
            # A concurrent submission stored its batch first
            logger.warning("Concurrent submission lost the race; nothing saved", extra=log_extra)
            raise ConflictError(
                "Survey already submitted for this cycle", details={"employee_id": employee_code},
            ) from exc
        logger.exception("Answer batch failed; nothing saved", extra=log_extra)
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Answer batch failed; nothing saved", extra=log_extra)
        raise

    result = SubmissionResult(
        employee_id=employee_code,
        company_id=company_id,
        saved=len(rows),
        filled_flag_updated=True,
    )
    logger.info("Saved %d answers", len(rows), extra=log_extra)

    # ── 2. Filled flag (answers take precedence) ─────────────────────────
    if not _set_filled(result, employee_pk, log_extra):
        return result

    # ── 3. Completion check and trigger ──────────────────────────────────
    _check_completion(result, runner, log_extra)
    return result


def submission_status(caller, employee_code: str | None = None) -> dict:
    """Per-employee submission status: self, HR of the same company, or Admin."""
    employee = get_employee_for_caller(caller, employee_code or caller.employee_code, allow_self=True)
    return {
        "employee_id": employee.employee_code,
        "name": employee.name,
        "role": employee.role,
        "company_id": employee.company_id,
        "has_filled_form": bool(employee.is_filled),
    }
