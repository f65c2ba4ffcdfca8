"""Completion detector — is every non-HR employee of a company filled?

One implementation serves the submission path, the status endpoints, report
retrieval and the orchestrator's phase-2 re-check.

Rules:
  - "Non-HR" means ``role != 'HR'``; every other role counts.
  - ``total`` and ``filled`` come from one aggregate SELECT so both numbers
    describe the same snapshot of the employees table.
  - A company with no non-HR employees is never complete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select

from sentiment.models import db
from sentiment.models.company import Employee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionStatus:
    """Snapshot of a company's submission progress."""

    company_id: int
    total: int
    filled: int

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.filled == self.total

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "total": self.total,
            "filled": self.filled,
            "complete": self.complete,
        }


def is_complete(company_id: int) -> CompletionStatus:
    """Count non-HR employees and how many of them have submitted.

    Args:
        company_id: Company to evaluate.

    Returns:
        CompletionStatus with ``complete = total > 0 and filled == total``.
    """
    row = db.session.execute(
        select(
            func.count(Employee.id),
            func.coalesce(
                func.sum(case((Employee.is_filled.is_(True), 1), else_=0)), 0
            ),
        ).where(
            Employee.company_id == company_id,
            Employee.role != Employee.ROLE_HR,
        )
    ).one()
    status = CompletionStatus(company_id=company_id, total=int(row[0]), filled=int(row[1]))
    logger.debug(
        "Completion check company=%s total=%d filled=%d complete=%s",
        company_id, status.total, status.filled, status.complete,
    )
    return status


def company_status(company) -> dict:
    """Company progress plus the list of employees that have not submitted.

    Args:
        company: Company ORM instance (already access-checked by the caller).
    """
    status = is_complete(company.id)
    pending = db.session.execute(
        select(Employee)
        .where(
            Employee.company_id == company.id,
            Employee.role != Employee.ROLE_HR,
            Employee.is_filled.is_(False),
        )
        .order_by(Employee.employee_code)
    ).scalars().all()

    return {
        "company_id": company.id,
        "company_name": company.name,
        "total": status.total,
        "filled": status.filled,
        "complete": status.complete,
        "not_filled": [e.to_summary() for e in pending],
    }
