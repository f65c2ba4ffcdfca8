"""
Access guard — company isolation for every read and write path.

Every operation resolves the caller's company and the target's company and
refuses to proceed unless they match. The ``Admin`` role is the superuser
and may target any company.

Rules:
  - Company references accept a numeric id or the unique company name.
  - A non-admin naming another company gets ForbiddenError before any
    lookup happens, so company existence is never disclosed to them.
  - Employees are looked up by ``employee_code``; an unknown code is a
    NotFoundError, a code in another company is a ForbiddenError.

Usage:
    caller = g.caller
    company = resolve_company_for(caller, request.args.get("company"))
    employee = get_employee_for_caller(caller, "E-42", allow_self=True)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from sentiment.core.exceptions import ForbiddenError, NotFoundError
from sentiment.models import db
from sentiment.models.company import Company, Employee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Authenticated principal, resolved once per request."""

    employee_id: int
    employee_code: str
    role: str
    company_id: int

    @property
    def is_admin(self) -> bool:
        return self.role == Employee.ROLE_ADMIN

    @property
    def is_hr(self) -> bool:
        return self.role == Employee.ROLE_HR

    @property
    def can_manage_reports(self) -> bool:
        return self.is_hr or self.is_admin

    @classmethod
    def from_employee(cls, employee: Employee) -> "Caller":
        return cls(
            employee_id=employee.id,
            employee_code=employee.employee_code,
            role=employee.role,
            company_id=employee.company_id,
        )


def _is_numeric_ref(ref: int | str) -> bool:
    return isinstance(ref, int) or (isinstance(ref, str) and ref.strip().isdigit())


def resolve_company(ref: int | str | None) -> Company:
    """Look up a company by numeric id or unique name.

    Raises:
        NotFoundError: No company matches ``ref``.
    """
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        raise NotFoundError(resource="Company", resource_id=ref)

    if _is_numeric_ref(ref):
        company = db.session.get(Company, int(ref))
    else:
        company = db.session.execute(
            select(Company).where(Company.name == ref.strip())
        ).scalar_one_or_none()

    if company is None:
        raise NotFoundError(resource="Company", resource_id=ref)
    return company


def ensure_company_access(caller: Caller, company_id: int) -> None:
    """Raise ForbiddenError unless ``caller`` may act on ``company_id``."""
    if caller.is_admin:
        return
    if caller.company_id != company_id:
        logger.warning(
            "Cross-company access denied caller=%s caller_company=%s target_company=%s",
            caller.employee_code, caller.company_id, company_id,
        )
        raise ForbiddenError(
            "Access denied: resource belongs to another company",
            caller_company_id=caller.company_id,
            target_company_id=company_id,
        )


def resolve_company_for(caller: Caller, ref: int | str | None = None) -> Company:
    """Return the company ``caller`` is acting on.

    ``ref=None`` means the caller's own company. Admins may name any company;
    everyone else may only name their own.
    """
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        return resolve_company(caller.company_id)

    if caller.is_admin:
        return resolve_company(ref)

    own = resolve_company(caller.company_id)
    if _is_numeric_ref(ref):
        matches = int(ref) == own.id
    else:
        matches = ref.strip() == own.name
    if not matches:
        logger.warning(
            "Company reference denied caller=%s caller_company=%s ref=%r",
            caller.employee_code, caller.company_id, ref,
        )
        raise ForbiddenError(
            "Access denied: you can only access your own company",
            caller_company_id=caller.company_id,
        )
    return own


def get_employee(employee_code: str) -> Employee:
    """Unscoped lookup by employee code. Raises NotFoundError."""
    employee = db.session.execute(
        select(Employee).where(Employee.employee_code == employee_code)
    ).scalar_one_or_none()
    if employee is None:
        raise NotFoundError(resource="Employee", resource_id=employee_code)
    return employee


def get_employee_for_caller(
    caller: Caller,
    employee_code: str,
    *,
    allow_self: bool = False,
) -> Employee:
    """Fetch an employee the caller is allowed to see.

    Admin sees everyone; HR sees employees of their own company; with
    ``allow_self`` any caller may see their own record.

    Raises:
        NotFoundError: Unknown employee code.
        ForbiddenError: Employee belongs to another company, or the caller's
            role does not grant access to other employees.
    """
    employee = get_employee(employee_code)

    if caller.is_admin:
        return employee
    if allow_self and employee.id == caller.employee_id:
        return employee

    ensure_company_access(caller, employee.company_id)
    if not caller.is_hr:
        logger.warning(
            "Employee access denied caller=%s role=%s target=%s",
            caller.employee_code, caller.role, employee_code,
        )
        raise ForbiddenError("Access denied: insufficient role")
    return employee
