"""HR questionnaire and experience feedback.

Rules:
  - Only active questions are listed or accepted, ordered by id.
  - One questionnaire submission per HR employee. The batch is inserted in a
    single transaction; the unique (employee_id, question_id) constraint
    turns a concurrent second batch into ConflictError.
  - Every option_id must belong to the question it answers. Choice
    questions need an option; text and amount questions need response_text.
  - Experience feedback is open to HR and Managers only; both figures must
    be JSON numbers (booleans are refused) and satisfaction lies in 0..100.
"""

from __future__ import annotations

import logging
import numbers

from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sentiment.core.exceptions import ConflictError, ForbiddenError, ValidationError
from sentiment.models import db
from sentiment.models.company import Employee
from sentiment.models.feedback import (
    ExperienceFeedback,
    HrFeedbackOption,
    HrFeedbackQuestion,
    HrFeedbackResponse,
)
from sentiment.services.access_guard import resolve_company_for

logger = logging.getLogger(__name__)

_EXPERIENCE_ROLES = {Employee.ROLE_HR, Employee.ROLE_MANAGER}


def _active_questions() -> list[HrFeedbackQuestion]:
    return db.session.execute(
        select(HrFeedbackQuestion)
        .where(HrFeedbackQuestion.is_active.is_(True))
        .order_by(HrFeedbackQuestion.id)
    ).scalars().all()


def list_feedback_questions() -> list[dict]:
    """Active questionnaire questions, each with its options."""
    return [q.to_dict() for q in _active_questions()]


def _response_count(employee_pk: int) -> int:
    return db.session.execute(
        select(func.count(HrFeedbackResponse.id)).where(HrFeedbackResponse.employee_id == employee_pk)
    ).scalar() or 0


def feedback_submission_status(caller) -> dict:
    count = _response_count(caller.employee_id)
    return {"hasSubmitted": count > 0, "count": count}


def _validate_feedback(responses) -> list[dict]:
    if not isinstance(responses, list):
        raise ValidationError("responses must be a list", details={"responses": "required"})
    if not responses:
        raise ValidationError("No responses to submit", details={"responses": "empty"})

    questions = {q.id: q for q in _active_questions()}
    option_owner = dict(db.session.execute(
        select(HrFeedbackOption.id, HrFeedbackOption.question_id)
        .where(HrFeedbackOption.question_id.in_(list(questions)))
    ).all())

    rows = []
    errors = {}
    seen = set()
    for idx, item in enumerate(responses):
        if not isinstance(item, dict):
            errors[str(idx)] = "response must be an object"
            continue
        try:
            question_id = int(item.get("question_id"))
        except (TypeError, ValueError):
            errors[str(idx)] = "question_id is required"
            continue
        question = questions.get(question_id)
        if question is None:
            errors[str(idx)] = f"question_id {question_id} is not an active question"
            continue
        if question_id in seen:
            errors[str(idx)] = f"question_id {question_id} answered twice"
            continue

        option_id = item.get("option_id")
        if option_id is not None:
            try:
                option_id = int(option_id)
            except (TypeError, ValueError):
                errors[str(idx)] = "option_id must be an integer"
                continue
            if option_owner.get(option_id) != question_id:
                errors[str(idx)] = f"option_id {option_id} does not belong to question {question_id}"
                continue
        text = item.get("response_text")
        text = str(text).strip() if text is not None else None

        if question.question_type in HrFeedbackQuestion.TEXT_TYPES:
            if not text:
                errors[str(idx)] = "response_text is required"
                continue
        elif option_id is None:
            errors[str(idx)] = "option_id is required"
            continue

        seen.add(question_id)
        rows.append({"question_id": question_id, "option_id": option_id, "response_text": text or None})

    if errors:
        raise ValidationError("One or more responses are invalid", details=errors)
    return rows


def submit_hr_feedback(caller, responses) -> dict:
    """Store the caller's questionnaire answers as one batch.

    Raises:
        ValidationError: Not a list, empty, or an invalid answer.
        ConflictError: The caller already submitted.
    """
    if not caller.is_hr:
        raise ForbiddenError("Access denied: the questionnaire is for HR")
    log_extra = {"company_id": caller.company_id, "employee_id": caller.employee_code}
    if _response_count(caller.employee_id):
        raise ConflictError("Feedback already submitted", details={"employee_id": caller.employee_code})
    rows = _validate_feedback(responses)

    try:
        db.session.execute(
            insert(HrFeedbackResponse),
            [{**row, "employee_id": caller.employee_id} for row in rows],
        )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _response_count(caller.employee_id):
            logger.warning("Concurrent feedback submission lost the race", extra=log_extra)
            raise ConflictError(
                "Feedback already submitted", details={"employee_id": caller.employee_code},
            ) from exc
        logger.exception("Feedback batch failed; nothing saved", extra=log_extra)
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Feedback batch failed; nothing saved", extra=log_extra)
        raise

    logger.info("Saved %d feedback answers", len(rows), extra=log_extra)
    return {"success": True, "message": "Feedback submitted", "saved": len(rows)}


def company_feedback(caller, company_ref) -> dict:
    """Questionnaire answers of every HR employee of one company.

    Text and amount questions report ``response_text``; choice questions
    report the chosen option's text. Unanswered questions report None.
    """
    company = resolve_company_for(caller, company_ref)
    hr_staff = db.session.execute(
        select(Employee)
        .where(Employee.company_id == company.id, Employee.role == Employee.ROLE_HR)
        .order_by(Employee.employee_code)
    ).scalars().all()
    questions = _active_questions()

    answers = {}
    if hr_staff:
        rows = db.session.execute(
            select(HrFeedbackResponse, HrFeedbackOption.option_text)
            .outerjoin(HrFeedbackOption, HrFeedbackResponse.option_id == HrFeedbackOption.id)
            .where(HrFeedbackResponse.employee_id.in_([e.id for e in hr_staff]))
        ).all()
        for response, option_text in rows:
            answers[(response.employee_id, response.question_id)] = (response.response_text, option_text)

    feedback_list = []
    for hr in hr_staff:
        feedback = []
        for q in questions:
            text, option_text = answers.get((hr.id, q.id), (None, None))
            answer = text if q.question_type in HrFeedbackQuestion.TEXT_TYPES else option_text
            feedback.append({
                "question_id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "answer": answer,
            })
        feedback_list.append({"employeesID": hr.employee_code, "name": hr.name, "feedback": feedback})

    return {"company_id": company.id, "company_name": company.name, "feedbackList": feedback_list}


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def submit_experience_feedback(caller, data: dict) -> dict:
    """Record an HR or Manager's satisfaction and willingness to pay.

    Raises:
        ForbiddenError: Caller is neither HR nor Manager.
        ValidationError: A figure is missing, not a number, or out of range.
    """
    if caller.role not in _EXPERIENCE_ROLES:
        raise ForbiddenError("Access denied: feedback is open to HR and Managers")

    satisfaction = data.get("satisfactionPercent")
    pay = data.get("payWillingness")
    errors = {}
    if not _is_number(satisfaction):
        errors["satisfactionPercent"] = "must be a number"
    elif not 0 <= satisfaction <= 100:
        errors["satisfactionPercent"] = "must be between 0 and 100"
    if not _is_number(pay):
        errors["payWillingness"] = "must be a number"
    elif pay < 0:
        errors["payWillingness"] = "must not be negative"
    if errors:
        raise ValidationError("Invalid feedback data", details=errors)

    entry = ExperienceFeedback(
        employee_id=caller.employee_id,
        role=caller.role,
        satisfaction_percent=float(satisfaction),
        pay_per_employee=float(pay),
    )
    db.session.add(entry)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(
            "Experience feedback insert failed",
            extra={"company_id": caller.company_id, "employee_id": caller.employee_code},
        )
        raise

    logger.info("Experience feedback recorded role=%s", caller.role,
                extra={"company_id": caller.company_id, "employee_id": caller.employee_code})
    return {"success": True, "message": "Feedback submitted", "feedback": entry.to_dict()}
