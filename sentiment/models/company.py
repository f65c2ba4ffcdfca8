"""
Tenant Directory models — companies and their employees.

A Company is the unit of data isolation: every employee, survey response,
report and analysis run hangs off exactly one company, and every lookup
that crosses the API boundary is scoped by ``company_id``.
"""

from datetime import datetime, timezone

from sentiment.models import db
from sentiment.models.base import CompanyScopedModel


# ═══════════════════════════════════════════════════════════════
# 1. COMPANIES
# ═══════════════════════════════════════════════════════════════
class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    employees = db.relationship(
        "Employee", back_populates="company", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_counts=False):
        d = {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_counts:
            d["employee_count"] = self.employees.count()
        return d

    def __repr__(self):
        return f"<Company id={self.id} name={self.name!r}>"


# ═══════════════════════════════════════════════════════════════
# 2. EMPLOYEES
# ═══════════════════════════════════════════════════════════════
class Employee(CompanyScopedModel):
    __tablename__ = "employees"

    ROLE_EMPLOYEE = "Employee"
    ROLE_MANAGER = "Manager"
    ROLE_HR = "HR"
    ROLE_ADMIN = "Admin"
    VALID_ROLES = {ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_HR, ROLE_ADMIN}

    id = db.Column(db.Integer, primary_key=True)
    # Human-facing identifier ("employeesID" in the HR spreadsheets)
    employee_code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(200))
    email = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default=ROLE_EMPLOYEE)
    is_filled = db.Column(db.Boolean, nullable=False, default=False)
    password_hash = db.Column(db.String(256))  # owned by the login service
    is_logged_in = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("company_id", "email", name="uq_employee_company_email"),
        db.Index("ix_employees_company_role", "company_id", "role"),
        db.CheckConstraint(
            "role IN ('Employee','Manager','HR','Admin')",
            name="ck_employee_role",
        ),
    )

    # Relationships
    company = db.relationship("Company", back_populates="employees")
    responses = db.relationship(
        "SurveyResponse", back_populates="employee", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    individual_reports = db.relationship(
        "IndividualReport", back_populates="employee", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_code,
            "company_id": self.company_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_filled": bool(self.is_filled),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_summary(self):
        """Short form used in status listings."""
        return {
            "employee_id": self.employee_code,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self):
        return f"<Employee {self.employee_code} company={self.company_id} role={self.role}>"
