"""Analysis orchestrator — two-phase AI analysis of a company.

Phase 1 (individual): every non-HR, filled employee's answers are shaped
into the service payload and sent to ``/analyze``. Employees are independent:
a failure is recorded on the run and the loop continues. Filled employees
without any persisted answers are skipped with a warning.

Phase 2 (company): completeness is re-checked immediately before the call,
because a reset may have happened while phase 1 was running. Only then is
``/analyze-company`` called; the service computes and stores the company
report itself.

Rules:
  - No transaction is open while the gateway is waiting: the session is
    committed before every outbound call.
  - Phase-2 failures propagate as AnalysisError subclasses; phase-1 results
    stay in place.
  - The gateway is passed in explicitly; this module never reads app config.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from sentiment.core.exceptions import AnalysisError, NotFoundError, NotReadyError
from sentiment.models import db
from sentiment.models.analysis import AnalysisRun
from sentiment.models.company import Company, Employee
from sentiment.models.survey import FormQuestion, MasterQuestion, SurveyResponse
from sentiment.services.completion_service import is_complete

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Payload shaping ───────────────────────────────────────────────────────────


def collect_answers(employee_id: int) -> dict:
    """Return ``{"q<N>": {"question", "answer"}}`` ordered by question number.

    ``answer`` is the free-text answer, else the chosen option, else "".
    """
    rows = db.session.execute(
        select(
            MasterQuestion.question_number,
            FormQuestion.question_text,
            SurveyResponse.answer_text,
            SurveyResponse.answer_choice,
        )
        .join(FormQuestion, SurveyResponse.form_question_id == FormQuestion.id)
        .join(MasterQuestion, FormQuestion.master_question_id == MasterQuestion.id)
        .where(SurveyResponse.employee_id == employee_id)
        .order_by(MasterQuestion.question_number, SurveyResponse.id)
    ).all()

    answers = {}
    for number, question_text, answer_text, answer_choice in rows:
        answers[f"q{number}"] = {
            "question": question_text,
            "answer": answer_text or answer_choice or "",
        }
    return answers


def build_employee_payload(employee_code: str, company_name: str | None, answers: dict) -> dict:
    """Request body for ``POST /analyze``."""
    return {"employeeId": employee_code, "company": company_name, "answers": answers}


# ── Run bookkeeping ───────────────────────────────────────────────────────────


def _load_run(run_id: int | None) -> AnalysisRun | None:
    if run_id is None:
        return None
    run = db.session.get(AnalysisRun, run_id)
    if run is None:
        raise NotFoundError(resource="AnalysisRun", resource_id=run_id)
    return run


def _record_progress(run_id, *, phase=None, total=None, ok=0, failed=0, skipped=0, errors=None):
    """Write phase-1 counters to the run row (if any) and commit."""
    run = _load_run(run_id)
    if run is not None:
        if phase is not None:
            run.phase = phase
        if total is not None:
            run.employees_total = total
        run.employees_ok = ok
        run.employees_failed = failed
        run.employees_skipped = skipped
        run.employee_errors = list(errors or [])
    db.session.commit()


# ── Orchestration ─────────────────────────────────────────────────────────────


def run_company_analysis(company_id: int, *, gateway, run_id: int | None = None) -> dict:
    """Run both analysis phases for one company.

    Args:
        company_id: Company to analyse.
        gateway:    AnalysisGateway (or a test double with the same methods).
        run_id:     Optional AnalysisRun id whose progress fields are updated.

    Returns:
        Summary dict: company_id, employees {total, ok, failed, skipped},
        employee_errors and the company call's response body.

    Raises:
        NotFoundError: Unknown company.
        NotReadyError: Company no longer complete right before phase 2.
        AnalysisError: Phase-2 call failed (unavailable / timeout / rejected).
    """
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    company_name = company.name
    log_extra = {"company_id": company_id, "run_id": run_id}

    # ── Phase 1: individual reports ──────────────────────────────────────
    eligible = db.session.execute(
        select(Employee.id, Employee.employee_code)
        .where(
            Employee.company_id == company_id,
            Employee.role != Employee.ROLE_HR,
            Employee.is_filled.is_(True),
        )
        .order_by(Employee.employee_code)
    ).all()

    ok = failed = skipped = 0
    errors: list[dict] = []
    _record_progress(run_id, phase=AnalysisRun.PHASE_INDIVIDUAL, total=len(eligible))
    logger.info("Phase 1 started: %d employees to analyse", len(eligible), extra=log_extra)

    for employee_pk, employee_code in eligible:
        answers = collect_answers(employee_pk)
        if not answers:
            skipped += 1
            errors.append({
                "employee_id": employee_code,
                "kind": "no_answers",
                "error": "Employee is marked filled but has no saved answers",
            })
            logger.warning(
                "Skipping employee %s: filled but no answers", employee_code,
                extra={**log_extra, "employee_id": employee_code},
            )
            _record_progress(run_id, ok=ok, failed=failed, skipped=skipped, errors=errors)
            continue

        payload = build_employee_payload(employee_code, company_name, answers)
        # Release the connection before the long outbound call
        db.session.commit()
        try:
            gateway.analyze_employee(payload)
        except AnalysisError as exc:
            failed += 1
            errors.append({"employee_id": employee_code, "kind": exc.kind, "error": str(exc)})
            logger.error(
                "Individual analysis failed for %s: %s", employee_code, exc,
                extra={**log_extra, "employee_id": employee_code},
            )
        else:
            ok += 1
            logger.info(
                "Individual analysis done for %s", employee_code,
                extra={**log_extra, "employee_id": employee_code},
            )
        _record_progress(run_id, ok=ok, failed=failed, skipped=skipped, errors=errors)

    logger.info(
        "Phase 1 finished: ok=%d failed=%d skipped=%d", ok, failed, skipped, extra=log_extra,
    )

    # ── Phase 2: company report ──────────────────────────────────────────
    status = is_complete(company_id)
    if not status.complete:
        db.session.commit()
        logger.warning(
            "Company no longer complete before phase 2 (%d/%d); company analysis skipped",
            status.filled, status.total, extra=log_extra,
        )
        raise NotReadyError(
            total=status.total,
            filled=status.filled,
            message=(
                "Company is no longer submission-complete "
                f"({status.filled}/{status.total}); company analysis skipped"
            ),
        )

    _record_progress(
        run_id, phase=AnalysisRun.PHASE_COMPANY, ok=ok, failed=failed, skipped=skipped, errors=errors,
    )
    result = gateway.analyze_company(company_id)
    logger.info("Phase 2 finished: company report generated", extra=log_extra)

    return {
        "company_id": company_id,
        "employees": {
            "total": len(eligible),
            "ok": ok,
            "failed": failed,
            "skipped": skipped,
        },
        "employee_errors": errors,
        "company": result.data,
        "completed_at": _utcnow().isoformat(),
    }
