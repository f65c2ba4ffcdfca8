"""
Employee Sentiment Survey Platform
Analysis Runner — detached company analysis with a pollable status record.

Runs the two-phase orchestrator either on a daemon thread (automatic trigger
after the last submission, or a manual ``?async=true`` request) or inline
(manual synchronous trigger, and every run under TestingConfig). The outcome
is always written to ``analysis_runs``.

In-flight guard: a per-company in-process lock serialises the
check-and-set of the AnalysisRun marker row, and the partial unique index on
``analysis_runs(company_id) WHERE status IN ('pending','running')`` makes the
marker exclusive across worker processes.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from sentiment.core.exceptions import AnalysisError, ConflictError, NotFoundError, NotReadyError
from sentiment.models import db
from sentiment.models.analysis import AnalysisRun
from sentiment.services.analysis_orchestrator import run_company_analysis

logger = logging.getLogger(__name__)

# Active runs older than this are treated as abandoned (worker died mid-run)
DEFAULT_STALE_AFTER_SECONDS = 4 * 3600

# In-memory registry of running jobs (run_id → Thread)
_running_runs: dict[int, threading.Thread] = {}

_locks_guard = threading.Lock()
_company_locks: dict[int, threading.Lock] = {}


def company_lock(company_id: int) -> threading.Lock:
    """In-process lock shared by run claims and report resets of one company."""
    with _locks_guard:
        lock = _company_locks.get(company_id)
        if lock is None:
            lock = _company_locks[company_id] = threading.Lock()
        return lock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AnalysisRunner:
    """Schedules company analysis runs and tracks their outcome."""

    def __init__(self, gateway, *, app=None, run_in_background: bool = True,
                 stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS):
        self.gateway = gateway
        self.app = app
        self.run_in_background = run_in_background
        self.stale_after = timedelta(seconds=stale_after_seconds)

    # ── Scheduling ────────────────────────────────────────────────────────

    def schedule(
        self,
        company_id: int,
        *,
        trigger: str = AnalysisRun.TRIGGER_AUTO,
        requested_by: str | None = None,
        background: bool | None = None,
    ) -> dict:
        """
        Start a company analysis run.

        Args:
            company_id: Company to analyse.
            trigger: AnalysisRun.TRIGGER_AUTO or TRIGGER_MANUAL.
            requested_by: Employee code of the requester (None for auto).
            background: Override ``run_in_background`` for this call.

        Returns:
            Run dict (serializable). For inline runs this is the final state.

        Raises:
            ConflictError: A manual trigger found a run already in flight.
                Automatic triggers record a ``skipped`` run instead.
        """
        run, created = self._claim(company_id, trigger, requested_by)
        if not created:
            return run.to_dict()

        run_id = run.id
        if self.run_in_background if background is None else background:
            app = self.app or current_app._get_current_object()
            t = threading.Thread(
                target=self._execute_in_background,
                args=(app, run_id, company_id),
                daemon=True,
                name=f"analysis-run-{run_id}",
            )
            _running_runs[run_id] = t
            t.start()
            logger.info(
                "Analysis run %d scheduled in background", run_id,
                extra={"company_id": company_id, "run_id": run_id},
            )
            return run.to_dict()

        self._execute(run_id, company_id, raise_errors=False)
        return self.get_status(company_id, run_id)

    def run_now(self, company_id: int, *, requested_by: str | None = None) -> dict:
        """
        Manual synchronous analysis: run inline and propagate failures.

        Raises:
            ConflictError: A run is already in flight for this company.
            NotReadyError: The company is not (or no longer) complete.
            AnalysisError: The company phase failed.
        """
        run, _ = self._claim(company_id, AnalysisRun.TRIGGER_MANUAL, requested_by)
        run_id = run.id
        self._execute(run_id, company_id, raise_errors=True)
        return self.get_status(company_id, run_id)

    def _claim(self, company_id: int, trigger: str, requested_by: str | None):
        """Check-and-set the in-flight marker. Returns ``(run, created)``."""
        log_extra = {"company_id": company_id}
        with company_lock(company_id):
            active = self._active_run(company_id)
            if active is not None and self._is_stale(active):
                logger.warning(
                    "Abandoning stale analysis run %d (status=%s)", active.id, active.status,
                    extra={**log_extra, "run_id": active.id},
                )
                active.status = AnalysisRun.STATUS_FAILED
                active.error_kind = "abandoned"
                active.error_message = "Run did not finish; marked abandoned"
                active.completed_at = _utcnow()
                db.session.commit()
                active = None

            if active is None:
                run = AnalysisRun(
                    company_id=company_id,
                    trigger_type=trigger,
                    status=AnalysisRun.STATUS_PENDING,
                    requested_by=requested_by,
                )
                db.session.add(run)
                try:
                    db.session.commit()
                    return run, True
                except IntegrityError:
                    # Another worker process holds the marker
                    db.session.rollback()
                    active = self._active_run(company_id)

            in_flight_id = active.id if active is not None else None
            if trigger == AnalysisRun.TRIGGER_MANUAL:
                raise ConflictError(
                    "Company analysis is already in progress",
                    details={"run_id": in_flight_id},
                )

            skipped = AnalysisRun(
                company_id=company_id,
                trigger_type=trigger,
                status=AnalysisRun.STATUS_SKIPPED,
                requested_by=requested_by,
                error_kind="in_flight",
                error_message=f"Analysis run {in_flight_id} already in progress",
                completed_at=_utcnow(),
            )
            db.session.add(skipped)
            db.session.commit()
            logger.info(
                "Duplicate analysis trigger skipped; run %s in flight", in_flight_id,
                extra={**log_extra, "run_id": skipped.id},
            )
            return skipped, False

    def _active_run(self, company_id: int) -> AnalysisRun | None:
        return db.session.execute(
            select(AnalysisRun).where(
                AnalysisRun.company_id == company_id,
                AnalysisRun.status.in_(AnalysisRun.ACTIVE_STATUSES),
            )
        ).scalars().first()

    def _is_stale(self, run: AnalysisRun) -> bool:
        if run.id in _running_runs:
            return False
        started = _as_utc(run.started_at or run.created_at)
        return started is not None and _utcnow() - started > self.stale_after

    # ── Status ────────────────────────────────────────────────────────────

    def get_status(self, company_id: int, run_id: int) -> dict:
        """Run dict scoped to ``company_id``. Raises NotFoundError.

        Reloads the row: background runs write it through another session.
        """
        run = db.session.execute(
            select(AnalysisRun)
            .where(AnalysisRun.id == run_id, AnalysisRun.company_id == company_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if run is None:
            raise NotFoundError(resource="AnalysisRun", resource_id=run_id)
        return run.to_dict()

    def list_runs(self, company_id: int, status: str | None = None, limit: int = 20) -> list[dict]:
        """Most recent runs first."""
        q = AnalysisRun.query_for_company(company_id).order_by(
            AnalysisRun.created_at.desc(), AnalysisRun.id.desc()
        )
        if status:
            q = q.filter_by(status=status)
        q = q.populate_existing()
        return [r.to_dict() for r in q.limit(limit).all()]

    # ── Internal ──────────────────────────────────────────────────────────

    def _execute_in_background(self, app, run_id: int, company_id: int):
        """Run the orchestrator in a background thread."""
        with app.app_context():
            try:
                self._execute(run_id, company_id, raise_errors=False)
            finally:
                _running_runs.pop(run_id, None)

    def _execute(self, run_id: int, company_id: int, *, raise_errors: bool):
        log_extra = {"company_id": company_id, "run_id": run_id}
        run = db.session.get(AnalysisRun, run_id)
        run.status = AnalysisRun.STATUS_RUNNING
        run.started_at = _utcnow()
        db.session.commit()

        try:
            result = run_company_analysis(company_id, gateway=self.gateway, run_id=run_id)
        except NotReadyError as exc:
            db.session.rollback()
            self._finish(run_id, AnalysisRun.STATUS_SKIPPED, error_kind="not_ready", error=str(exc))
            if raise_errors:
                raise
        except AnalysisError as exc:
            db.session.rollback()
            logger.error("Company analysis failed (%s): %s", exc.kind, exc, extra=log_extra)
            self._finish(run_id, AnalysisRun.STATUS_FAILED, error_kind=exc.kind, error=str(exc))
            if raise_errors:
                raise
        except Exception as exc:
            db.session.rollback()
            logger.exception("Company analysis crashed", extra=log_extra)
            self._finish(run_id, AnalysisRun.STATUS_FAILED, error_kind="internal", error=str(exc)[:1000])
            if raise_errors:
                raise
        else:
            self._finish(run_id, AnalysisRun.STATUS_COMPLETED, result=result)
            logger.info("Company analysis completed", extra=log_extra)

    def _finish(self, run_id: int, status: str, *, result=None, error_kind=None, error=None):
        run = db.session.get(AnalysisRun, run_id)
        run.status = status
        run.result = result
        run.error_kind = error_kind
        run.error_message = error
        run.completed_at = _utcnow()
        db.session.commit()
