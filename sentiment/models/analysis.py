"""
AnalysisRun — status record for company-wide AI analysis.

One row per orchestration attempt (automatic or manual). The row doubles as
the per-company in-flight marker: a partial unique index allows at most one
*active* (pending/running) run per company, so two requests racing at the
completion boundary cannot both start the expensive external calls.
"""

from datetime import datetime, timezone

from sentiment.models import db
from sentiment.models.base import CompanyScopedModel


class AnalysisRun(CompanyScopedModel):
    """Company analysis attempt with per-phase progress."""
    __tablename__ = "analysis_runs"

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_SKIPPED = "skipped"
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_RUNNING)

    TRIGGER_AUTO = "auto"
    TRIGGER_MANUAL = "manual"

    PHASE_INDIVIDUAL = "individual"
    PHASE_COMPANY = "company"

    id = db.Column(db.Integer, primary_key=True)
    trigger_type = db.Column(db.String(20), nullable=False, default=TRIGGER_AUTO)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    phase = db.Column(db.String(20), nullable=True)

    # Phase 1 bookkeeping
    employees_total = db.Column(db.Integer, nullable=False, default=0)
    employees_ok = db.Column(db.Integer, nullable=False, default=0)
    employees_failed = db.Column(db.Integer, nullable=False, default=0)
    employees_skipped = db.Column(db.Integer, nullable=False, default=0)
    employee_errors = db.Column(db.JSON, nullable=True)

    # Outcome
    result = db.Column(db.JSON, nullable=True)
    error_kind = db.Column(db.String(30), nullable=True)
    error_message = db.Column(db.Text, nullable=True)

    # Context
    requested_by = db.Column(db.String(50), nullable=True)

    # Timing
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','running','completed','failed','skipped')",
            name="ck_analysis_run_status",
        ),
        db.CheckConstraint(
            "trigger_type IN ('auto','manual')",
            name="ck_analysis_run_trigger",
        ),
        db.Index(
            "uq_analysis_runs_company_active",
            "company_id",
            unique=True,
            postgresql_where=db.text("status IN ('pending','running')"),
            sqlite_where=db.text("status IN ('pending','running')"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "trigger": self.trigger_type,
            "status": self.status,
            "phase": self.phase,
            "employees": {
                "total": self.employees_total,
                "ok": self.employees_ok,
                "failed": self.employees_failed,
                "skipped": self.employees_skipped,
            },
            "employee_errors": self.employee_errors or [],
            "result": self.result,
            "error_kind": self.error_kind,
            "error": self.error_message,
            "requested_by": self.requested_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        return f"<AnalysisRun id={self.id} company={self.company_id} status={self.status}>"
