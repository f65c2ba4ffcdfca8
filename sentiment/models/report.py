"""
Report Store models — AI-generated individual and company reports.

Both tables are append-only from this application's point of view: rows are
written by the external analysis service and read back "latest wins"
(most recent ``created_at``, then highest ``id``). Reset operations are the
only deleters.
"""

from datetime import datetime, timezone

from sentiment.models import db
from sentiment.models.base import CompanyScopedModel


class IndividualReport(db.Model):
    __tablename__ = "individual_reports"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    result = db.Column(db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    employee = db.relationship("Employee", back_populates="individual_reports")

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee.employee_code if self.employee else None,
            "result": self.result,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CompanyReport(CompanyScopedModel):
    __tablename__ = "company_reports"

    id = db.Column(db.Integer, primary_key=True)
    result = db.Column(db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "result": self.result,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
