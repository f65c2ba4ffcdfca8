"""
Resolve the token subject to an Employee and publish ``g.caller``.

Runs after jwt_auth. The Employee row is authoritative: a promoted or
demoted employee gets their current role even with an older token. A
non-admin token naming a different company than the employee's row is
refused. Anonymous requests pass through with ``g.caller = None`` and are
rejected later by ``require_caller`` where it matters.
"""

import logging

from flask import g, request
from sqlalchemy import select

from sentiment.models import db
from sentiment.models.company import Employee
from sentiment.services.access_guard import Caller
from sentiment.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_OPEN_PREFIXES = ("/api/v1/health",)


def _company_claim_mismatch(employee: Employee, claimed) -> bool:
    if claimed is None or employee.role == Employee.ROLE_ADMIN:
        return False
    try:
        return int(claimed) != employee.company_id
    except (TypeError, ValueError):
        return True


def init_tenant_context(app):
    @app.before_request
    def _resolve_caller():
        g.caller = None
        g.company_id = None

        if not request.path.startswith("/api/v1/") or request.path.startswith(_OPEN_PREFIXES):
            return None
        code = getattr(g, "jwt_employee_code", None)
        if code is None:
            return None

        employee = db.session.execute(
            select(Employee).where(Employee.employee_code == code)
        ).scalar_one_or_none()
        if employee is None:
            logger.warning("Token subject %s has no employee record", code)
            return api_error(E.UNAUTHORIZED, "Employee not found for token")

        claimed = getattr(g, "jwt_company_id", None)
        if _company_claim_mismatch(employee, claimed):
            logger.warning("Token for %s claims company %s", code, claimed,
                           extra={"company_id": employee.company_id})
            return api_error(E.FORBIDDEN, "Token company does not match employee")

        g.caller = Caller.from_employee(employee)
        g.company_id = employee.company_id
        return None
