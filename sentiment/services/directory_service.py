"""Tenant directory — companies and their employees.

Administrators create companies and employees here and HR adds employees
to their own company; bulk import and login collaborators read and write
the same rows through these functions.

Rules:
  - company_id is always an explicit parameter (never from g).
  - db.session.commit() happens only in service modules.
  - Employee codes are unique system-wide, emails unique per company.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from sentiment.core.exceptions import ConflictError, ForbiddenError, ValidationError
from sentiment.models import db
from sentiment.models.company import Company, Employee

logger = logging.getLogger(__name__)


# ── Companies ─────────────────────────────────────────────────────────────────


def list_companies() -> list[dict]:
    """All companies with their employee counts, ordered by name."""
    rows = db.session.execute(
        select(Company, func.count(Employee.id))
        .outerjoin(Employee, Employee.company_id == Company.id)
        .group_by(Company.id)
        .order_by(Company.name)
    ).all()
    out = []
    for company, employee_count in rows:
        d = company.to_dict()
        d["employee_count"] = int(employee_count)
        out.append(d)
    return out


def create_company(data: dict) -> dict:
    """Create a company.

    Raises:
        ValidationError: ``name`` missing or blank.
        ConflictError: A company with that name already exists.
    """
    name = (data.get("name") or data.get("company_name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if name.isdigit():
        # Numeric names would be indistinguishable from ids in company lookups
        raise ValidationError("name must not be purely numeric", details={"name": "invalid"})

    company = Company(name=name)
    db.session.add(company)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Company {name!r} already exists") from None

    logger.info("Company created id=%s name=%s", company.id, name, extra={"company_id": company.id})
    return company.to_dict(include_counts=True)


# ── Employees ─────────────────────────────────────────────────────────────────


def list_employees(company_id: int) -> list[dict]:
    """Employees of one company, ordered by employee code."""
    employees = db.session.execute(
        select(Employee)
        .where(Employee.company_id == company_id)
        .order_by(Employee.employee_code)
    ).scalars().all()
    return [e.to_dict() for e in employees]


def create_employee(company_id: int, data: dict) -> dict:
    """Add an employee (any role, including HR) to a company.

    Args:
        company_id: Owning company (already access-checked by the caller).
        data: ``employee_id`` (code), ``name``, ``email`` and optional ``role``.

    Raises:
        ValidationError: Missing fields or unknown role.
        ConflictError: Employee code or company email already taken.
    """
    code = str(data.get("employee_id") or data.get("employee_code") or "").strip()
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    role = (data.get("role") or Employee.ROLE_EMPLOYEE).strip()

    missing = {field: "required" for field, value in
               (("employee_id", code), ("name", name), ("email", email)) if not value}
    if missing:
        raise ValidationError("employee_id, name and email are required", details=missing)
    if "@" not in email:
        raise ValidationError("email is invalid", details={"email": "invalid"})
    if role not in Employee.VALID_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(Employee.VALID_ROLES))}",
            details={"role": "invalid"},
        )

    employee = Employee(
        company_id=company_id,
        employee_code=code,
        name=name,
        email=email,
        role=role,
        is_filled=False,
    )
    db.session.add(employee)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "An employee with this employee_id or email already exists",
            details={"employee_id": code, "email": email},
        ) from None

    logger.info(
        "Employee created code=%s role=%s", code, role,
        extra={"company_id": company_id, "employee_id": code},
    )
    return employee.to_dict()


def add_company_employee(caller, data: dict) -> dict:
    """HR adds one employee to their own company.

    A code already present in the caller's company is skipped rather than
    refused. Only ``employee_id`` is required; the role defaults to Employee
    and HR may not create administrators.

    Returns:
        ``{"created": bool, "message": str, "employee": dict}``

    Raises:
        ValidationError: Missing code, malformed email or a role HR may not grant.
        ConflictError: Email already used in the company, or the code
            belongs to another company.
    """
    code = str(data.get("employee_id") or data.get("employeesID") or "").strip()
    name = (data.get("name") or "").strip() or None
    email = (data.get("email") or "").strip().lower() or None
    role = (data.get("role") or Employee.ROLE_EMPLOYEE).strip()
    log_extra = {"company_id": caller.company_id, "employee_id": code}

    if not caller.is_hr:
        raise ForbiddenError("Access denied: only HR adds employees here")
    if not code:
        raise ValidationError("employee_id is required", details={"employee_id": "required"})
    if email is not None and "@" not in email:
        raise ValidationError("email is invalid", details={"email": "invalid"})
    if role not in Employee.VALID_ROLES or role == Employee.ROLE_ADMIN:
        raise ValidationError(
            "role must be one of: Employee, HR, Manager", details={"role": "invalid"},
        )

    existing = db.session.execute(
        select(Employee).where(Employee.employee_code == code)
    ).scalar_one_or_none()
    if existing is not None:
        if existing.company_id == caller.company_id:
            logger.info("Employee %s already exists; skipped", code, extra=log_extra)
            return {"created": False, "message": "Employee already exists in company, skipped",
                    "employee": existing.to_dict()}
        raise ConflictError("employee_id is already in use", details={"employee_id": code})

    if email is not None:
        owner = db.session.execute(
            select(Employee.employee_code)
            .where(Employee.company_id == caller.company_id, Employee.email == email)
        ).scalar_one_or_none()
        if owner is not None:
            raise ConflictError(
                f"Email {email} already used in this company by {owner}",
                details={"email": email, "employee_id": owner},
            )

    employee = Employee(
        company_id=caller.company_id,
        employee_code=code,
        name=name,
        email=email,
        role=role,
        is_filled=False,
    )
    db.session.add(employee)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "An employee with this employee_id or email already exists",
            details={"employee_id": code, "email": email},
        ) from None

    logger.info("Employee added by HR %s role=%s", caller.employee_code, role, extra=log_extra)
    return {"created": True, "message": "Employee inserted", "employee": employee.to_dict()}
