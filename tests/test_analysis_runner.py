"""Tests for sentiment.ai.analysis_runner — run records and the in-flight guard.

Runs execute inline (TestingConfig sets ANALYSIS_RUN_IN_BACKGROUND=False);
the background path is exercised with the thread target called directly.

Coverage
--------
    1. inline schedule records a completed run with the orchestrator summary
    2. phase-2 failure → failed run with error_kind; run_now re-raises
    3. not-ready at phase 2 → skipped run
    4. in-flight guard: manual duplicate → ConflictError, auto duplicate →
       skipped run, no second external call
    5. the partial unique index rejects a second active run
    6. stale active runs are abandoned and a new run can start
    7. get_status is company scoped; list_runs is newest first
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from sentiment.ai.analysis_runner import AnalysisRunner
from sentiment.core.exceptions import (
    AnalysisUnavailableError,
    ConflictError,
    NotFoundError,
    NotReadyError,
)
from sentiment.models import db
from sentiment.models.analysis import AnalysisRun


@pytest.fixture()
def complete_company(make):
    company = make.company(name="Acme")
    form = make.form()
    make.fill(make.employee(company, code="E-1"), form)
    make.fill(make.employee(company, code="E-2"), form)
    return company


def _active_run(company, **overrides):
    fields = {
        "company_id": company.id,
        "trigger_type": AnalysisRun.TRIGGER_AUTO,
        "status": AnalysisRun.STATUS_RUNNING,
    }
    fields.update(overrides)
    run = AnalysisRun(**fields)
    db.session.add(run)
    db.session.commit()
    return run


class TestSchedule:
    def test_inline_run_completes(self, complete_company, runner, fake_gateway):
        run = runner.schedule(complete_company.id)

        assert run["status"] == AnalysisRun.STATUS_COMPLETED
        assert run["trigger"] == AnalysisRun.TRIGGER_AUTO
        assert run["phase"] == AnalysisRun.PHASE_COMPANY
        assert run["employees"] == {"total": 2, "ok": 2, "failed": 0, "skipped": 0}
        assert run["result"]["company"]["companyId"] == complete_company.id
        assert run["started_at"] and run["completed_at"]
        assert fake_gateway.company_calls == [complete_company.id]

    def test_company_failure_recorded(self, complete_company, runner, fake_gateway):
        fake_gateway.company_error = AnalysisUnavailableError("refused", endpoint="/analyze-company")

        run = runner.schedule(complete_company.id)

        assert run["status"] == AnalysisRun.STATUS_FAILED
        assert run["error_kind"] == "unavailable"
        assert run["error"] == "refused"

    def test_not_ready_is_skipped(self, make, runner, fake_gateway):
        company = make.company()
        make.employee(company)

        run = runner.schedule(company.id)

        assert run["status"] == AnalysisRun.STATUS_SKIPPED
        assert run["error_kind"] == "not_ready"
        assert fake_gateway.company_calls == []

    def test_unexpected_error_recorded_as_internal(self, complete_company, runner, fake_gateway):
        fake_gateway.company_error = RuntimeError("bug")

        run = runner.schedule(complete_company.id)

        assert run["status"] == AnalysisRun.STATUS_FAILED
        assert run["error_kind"] == "internal"

    def test_background_target_records_outcome(self, app, complete_company, fake_gateway):
        bg_runner = AnalysisRunner(fake_gateway, app=app, run_in_background=True)
        run, created = bg_runner._claim(complete_company.id, AnalysisRun.TRIGGER_AUTO, None)
        assert created

        bg_runner._execute_in_background(app, run.id, complete_company.id)

        assert bg_runner.get_status(complete_company.id, run.id)["status"] == AnalysisRun.STATUS_COMPLETED
        assert bg_runner.list_runs(complete_company.id)[0]["status"] == AnalysisRun.STATUS_COMPLETED
        # The caller's own row object is refreshed too
        assert run.status == AnalysisRun.STATUS_COMPLETED


class TestRunNow:
    def test_manual_run(self, complete_company, runner):
        run = runner.run_now(complete_company.id, requested_by="HR-1")
        assert run["status"] == AnalysisRun.STATUS_COMPLETED
        assert run["trigger"] == AnalysisRun.TRIGGER_MANUAL
        assert run["requested_by"] == "HR-1"

    def test_failure_reraised_and_recorded(self, complete_company, runner, fake_gateway):
        fake_gateway.company_error = AnalysisUnavailableError("refused", endpoint="/analyze-company")

        with pytest.raises(AnalysisUnavailableError):
            runner.run_now(complete_company.id, requested_by="HR-1")

        runs = runner.list_runs(complete_company.id)
        assert runs[0]["status"] == AnalysisRun.STATUS_FAILED

    def test_not_ready_reraised(self, make, runner):
        company = make.company()
        make.employee(company)
        with pytest.raises(NotReadyError):
            runner.run_now(company.id)


class TestInFlightGuard:
    def test_manual_duplicate_conflicts(self, complete_company, runner, fake_gateway):
        active = _active_run(complete_company)

        with pytest.raises(ConflictError) as exc_info:
            runner.run_now(complete_company.id, requested_by="HR-1")

        assert exc_info.value.details == {"run_id": active.id}
        assert fake_gateway.company_calls == []

    def test_auto_duplicate_recorded_as_skipped(self, complete_company, runner, fake_gateway):
        active = _active_run(complete_company)

        run = runner.schedule(complete_company.id)

        assert run["status"] == AnalysisRun.STATUS_SKIPPED
        assert run["error_kind"] == "in_flight"
        assert str(active.id) in run["error"]
        assert fake_gateway.employee_calls == []
        assert fake_gateway.company_calls == []

    def test_unique_index_allows_one_active_run(self, complete_company):
        _active_run(complete_company)
        db.session.add(AnalysisRun(
            company_id=complete_company.id, status=AnalysisRun.STATUS_PENDING,
        ))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_finished_runs_do_not_block(self, complete_company, runner, fake_gateway):
        runner.schedule(complete_company.id)
        runner.schedule(complete_company.id)
        assert fake_gateway.company_calls == [complete_company.id, complete_company.id]

    def test_stale_run_is_abandoned(self, complete_company, runner):
        old = datetime.now(timezone.utc) - timedelta(hours=5)
        stale = _active_run(complete_company, created_at=old, started_at=old)

        run = runner.schedule(complete_company.id)

        assert run["status"] == AnalysisRun.STATUS_COMPLETED
        stale = db.session.get(AnalysisRun, stale.id)
        assert stale.status == AnalysisRun.STATUS_FAILED
        assert stale.error_kind == "abandoned"


class TestStatus:
    def test_get_status_is_company_scoped(self, complete_company, make, runner):
        other = make.company()
        run = runner.schedule(complete_company.id)

        assert runner.get_status(complete_company.id, run["id"])["id"] == run["id"]
        with pytest.raises(NotFoundError):
            runner.get_status(other.id, run["id"])

    def test_list_runs_newest_first_and_filtered(self, complete_company, make, runner):
        incomplete = make.company()
        make.employee(incomplete)
        first = runner.schedule(complete_company.id)
        second = runner.schedule(complete_company.id)
        runner.schedule(incomplete.id)

        runs = runner.list_runs(complete_company.id)
        assert [r["id"] for r in runs] == [second["id"], first["id"]]
        assert runner.list_runs(incomplete.id, status=AnalysisRun.STATUS_COMPLETED) == []
        assert len(runner.list_runs(incomplete.id, status=AnalysisRun.STATUS_SKIPPED)) == 1
