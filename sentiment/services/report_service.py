"""Report store — retrieval, availability and the reset cycle.

Rules:
  - Reports are read "latest wins": newest ``created_at``, then highest id.
  - The company report is only served while the company is complete, and
    only a report written after the company's newest answer counts as
    current. A report from before a late joiner submitted stays hidden
    until analysis writes a new one.
  - Resets run in one transaction under the company lock shared with run
    claims, and are refused while an analysis run is in flight. The check
    sits inside the transaction, just before commit.
  - Every public function takes the Caller and goes through access_guard.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from sentiment.ai.analysis_runner import company_lock
from sentiment.core.exceptions import ConflictError, NotReadyError
from sentiment.models import db
from sentiment.models.analysis import AnalysisRun
from sentiment.models.company import Company, Employee
from sentiment.models.report import CompanyReport, IndividualReport
from sentiment.models.survey import SurveyResponse
from sentiment.services.access_guard import (
    Caller,
    get_employee_for_caller,
    resolve_company_for,
)
from sentiment.services.completion_service import is_complete

logger = logging.getLogger(__name__)

REASON_NOT_SUBMITTED = "not_submitted"
REASON_REPORT_MISSING = "report_missing"


def _latest_individual_report(employee_pk: int) -> IndividualReport | None:
    return db.session.execute(
        select(IndividualReport)
        .where(IndividualReport.employee_id == employee_pk)
        .order_by(IndividualReport.created_at.desc(), IndividualReport.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _current_company_report(company_id: int) -> CompanyReport | None:
    """Latest company report not older than the company's newest answer."""
    newest_answer = (
        select(func.max(SurveyResponse.created_at))
        .join(Employee, SurveyResponse.employee_id == Employee.id)
        .where(Employee.company_id == company_id)
        .scalar_subquery()
    )
    return db.session.execute(
        select(CompanyReport)
        .where(
            CompanyReport.company_id == company_id,
            or_(newest_answer.is_(None), CompanyReport.created_at >= newest_answer),
        )
        .order_by(CompanyReport.created_at.desc(), CompanyReport.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _ensure_no_active_run(company_id: int) -> None:
    active = db.session.execute(
        select(AnalysisRun.id).where(
            AnalysisRun.company_id == company_id,
            AnalysisRun.status.in_(AnalysisRun.ACTIVE_STATUSES),
        )
    ).scalars().first()
    if active is not None:
        raise ConflictError(
            "Company analysis is in progress; reset is not allowed until it finishes",
            details={"run_id": active},
        )


# ── Individual reports ────────────────────────────────────────────────────────


def get_individual_report(caller: Caller, employee_code: str) -> dict:
    """Latest individual report, or a "no report" result with a reason.

    Returns:
        ``{"available": True, "report": {...}, ...}`` or
        ``{"available": False, "reason": "not_submitted" | "report_missing", ...}``
    """
    employee = get_employee_for_caller(caller, employee_code)
    report = _latest_individual_report(employee.id)

    out = {
        "employee_id": employee.employee_code,
        "employee_name": employee.name,
        "company_id": employee.company_id,
        "has_filled_form": bool(employee.is_filled),
    }
    if report is not None:
        out.update(available=True, report=report.to_dict())
    elif employee.is_filled:
        out.update(
            available=False,
            reason=REASON_REPORT_MISSING,
            message="Employee submitted the survey but no report exists yet; it can be regenerated",
        )
    else:
        out.update(
            available=False,
            reason=REASON_NOT_SUBMITTED,
            message="Employee has not submitted the survey yet",
        )
    return out


def list_employee_report_status(caller: Caller, company_ref=None) -> dict:
    """Non-HR employees of a company with has_filled_form / has_report flags."""
    company = resolve_company_for(caller, company_ref)
    has_report = exists().where(IndividualReport.employee_id == Employee.id)
    rows = db.session.execute(
        select(Employee, has_report.label("has_report"))
        .where(Employee.company_id == company.id, Employee.role != Employee.ROLE_HR)
        .order_by(Employee.employee_code)
    ).all()

    employees = []
    for employee, flag in rows:
        d = employee.to_summary()
        d["has_filled_form"] = bool(employee.is_filled)
        d["has_report"] = bool(flag)
        employees.append(d)
    return {"company_id": company.id, "company_name": company.name, "employees": employees}


def regenerate_individual_report(caller: Caller, employee_code: str, *, gateway) -> dict:
    """Ask the analysis service to rebuild one employee's report.

    Raises:
        ConflictError: The employee has not submitted, so there is nothing to analyse.
        AnalysisError: The service call failed.
    """
    employee = get_employee_for_caller(caller, employee_code)
    if not employee.is_filled:
        raise ConflictError(
            "Employee has not submitted the survey; nothing to regenerate",
            details={"employee_id": employee_code},
        )
    company_name = employee.company.name
    name = employee.name
    db.session.commit()  # no transaction held across the outbound call

    result = gateway.regenerate_report(employee_code, company_name)
    logger.info(
        "Individual report regenerated for %s", employee_code,
        extra={"company_id": employee.company_id, "employee_id": employee_code},
    )
    return {
        "success": True,
        "message": f"Report successfully regenerated for {name}",
        "employee_id": employee_code,
        "employee_name": name,
        "data": result.data,
    }


# ── Company reports ───────────────────────────────────────────────────────────


def get_company_report(caller: Caller, company_ref=None) -> dict:
    """Current company report.

    Raises:
        NotReadyError: Not every non-HR employee has submitted, or the
            company is complete but analysis has not produced the report yet.
    """
    company = resolve_company_for(caller, company_ref)
    status = is_complete(company.id)
    if not status.complete:
        raise NotReadyError(total=status.total, filled=status.filled)

    report = _current_company_report(company.id)
    if report is None:
        raise NotReadyError(
            total=status.total,
            filled=status.filled,
            message="All employees have submitted; the company report is still being generated",
            reason=NotReadyError.REASON_REPORT_PENDING,
        )

    d = report.to_dict()
    d["company_name"] = company.name
    d["completion"] = status.to_dict()
    return d


def company_report_status(caller: Caller, company_ref=None) -> dict:
    """Completion counts plus whether a current company report exists."""
    company = resolve_company_for(caller, company_ref)
    status = is_complete(company.id)
    report = _current_company_report(company.id) if status.complete else None
    return {
        "company_id": company.id,
        "company_name": company.name,
        "total": status.total,
        "filled": status.filled,
        "complete": status.complete,
        "has_report": report is not None,
        "report_created_at": report.created_at.isoformat() if report else None,
    }


# ── Reset ─────────────────────────────────────────────────────────────────────


def _reset_employees(company: Company, employee_pks: list[int]) -> dict:
    """Delete answers, reports and the company report; clear filled. Commits.

    The in-flight check runs last inside the transaction so a run claimed by
    another worker while the deletes ran still aborts the reset.
    """
    try:
        responses = individual = 0
        if employee_pks:
            responses = db.session.execute(
                delete(SurveyResponse)
                .where(SurveyResponse.employee_id.in_(employee_pks))
                .execution_options(synchronize_session=False)
            ).rowcount
            individual = db.session.execute(
                delete(IndividualReport)
                .where(IndividualReport.employee_id.in_(employee_pks))
                .execution_options(synchronize_session=False)
            ).rowcount
            db.session.execute(
                update(Employee)
                .where(Employee.id.in_(employee_pks))
                .values(is_filled=False)
                .execution_options(synchronize_session=False)
            )
        company_reports = db.session.execute(
            delete(CompanyReport)
            .where(CompanyReport.company_id == company.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        _ensure_no_active_run(company.id)
        db.session.commit()
    except ConflictError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Reset rolled back", extra={"company_id": company.id})
        raise
    db.session.expire_all()

    return {
        "company_id": company.id,
        "company_name": company.name,
        "employees_reset": len(employee_pks),
        "responses_deleted": responses,
        "individual_reports_deleted": individual,
        "company_reports_deleted": company_reports,
    }


def reset_company(caller: Caller, company_ref=None, *, only_filled: bool = False) -> dict:
    """Start a new survey cycle for a company (or only its filled employees).

    The company report is deleted even when no employee is selected.

    Raises:
        ConflictError: An analysis run is in flight.
    """
    company = resolve_company_for(caller, company_ref)

    with company_lock(company.id):
        q = select(Employee.id).where(Employee.company_id == company.id)
        if only_filled:
            q = q.where(Employee.is_filled.is_(True))
        employee_pks = list(db.session.execute(q).scalars().all())
        out = _reset_employees(company, employee_pks)

    out["message"] = f"Reset {len(employee_pks)} employees" if employee_pks else "No employees to reset"
    logger.info(
        "Company reset by %s only_filled=%s employees=%d",
        caller.employee_code, only_filled, len(employee_pks),
        extra={"company_id": company.id},
    )
    return out


def reset_employee(caller: Caller, employee_code: str) -> dict:
    """Let one employee retake the survey; the company report becomes stale and is deleted.

    Raises:
        ConflictError: An analysis run is in flight for the employee's company.
    """
    employee = get_employee_for_caller(caller, employee_code)
    company = employee.company

    with company_lock(company.id):
        out = _reset_employees(company, [employee.id])

    out["employee_id"] = employee_code
    out["message"] = f"Survey reset for {employee_code}"
    logger.info(
        "Employee reset by %s", caller.employee_code,
        extra={"company_id": company.id, "employee_id": employee_code},
    )
    return out
