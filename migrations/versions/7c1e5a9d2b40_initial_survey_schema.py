"""initial_survey_schema

Create companies, employees, survey, report and analysis_runs tables.

Revision ID: 7c1e5a9d2b40
Revises:
Create Date: 2026-10-18 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e5a9d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "companies" not in existing_tables:
        op.create_table(
            "companies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "employees" not in existing_tables:
        op.create_table(
            "employees",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("employee_code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="Employee"),
            sa.Column("is_filled", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("password_hash", sa.String(length=256), nullable=True),
            sa.Column("is_logged_in", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint("role IN ('Employee','Manager','HR','Admin')", name="ck_employee_role"),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("employee_code"),
            sa.UniqueConstraint("company_id", "email", name="uq_employee_company_email"),
        )
        op.create_index("ix_employees_company_id", "employees", ["company_id"])
        op.create_index("ix_employees_company_role", "employees", ["company_id", "role"])

    if "survey_forms" not in existing_tables:
        op.create_table(
            "survey_forms",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "master_questions" not in existing_tables:
        op.create_table(
            "master_questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("question_number", sa.Integer(), nullable=False),
            sa.Column("question_type", sa.String(length=30), nullable=False, server_default="text"),
            sa.Column("options", sa.JSON(), nullable=True),
            sa.Column("helper_text", sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "form_questions" not in existing_tables:
        op.create_table(
            "form_questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("form_id", sa.Integer(), nullable=False),
            sa.Column("master_question_id", sa.Integer(), nullable=False),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.ForeignKeyConstraint(["form_id"], ["survey_forms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["master_question_id"], ["master_questions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_form_questions_form_id", "form_questions", ["form_id"])

    if "survey_responses" not in existing_tables:
        op.create_table(
            "survey_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.Integer(), nullable=False),
            sa.Column("form_id", sa.Integer(), nullable=False),
            sa.Column("form_question_id", sa.Integer(), nullable=False),
            sa.Column("answer_text", sa.Text(), nullable=True),
            sa.Column("answer_choice", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["form_id"], ["survey_forms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["form_question_id"], ["form_questions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_survey_responses_employee_id", "survey_responses", ["employee_id"])

    if "individual_reports" not in existing_tables:
        op.create_table(
            "individual_reports",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.Integer(), nullable=False),
            sa.Column("result", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_individual_reports_employee_id", "individual_reports", ["employee_id"])

    if "company_reports" not in existing_tables:
        op.create_table(
            "company_reports",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("result", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_company_reports_company_id", "company_reports", ["company_id"])

    if "analysis_runs" not in existing_tables:
        op.create_table(
            "analysis_runs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("trigger_type", sa.String(length=20), nullable=False, server_default="auto"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("phase", sa.String(length=20), nullable=True),
            sa.Column("employees_total", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("employees_ok", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("employees_failed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("employees_skipped", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("employee_errors", sa.JSON(), nullable=True),
            sa.Column("result", sa.JSON(), nullable=True),
            sa.Column("error_kind", sa.String(length=30), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("requested_by", sa.String(length=50), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint(
                "status IN ('pending','running','completed','failed','skipped')",
                name="ck_analysis_run_status",
            ),
            sa.CheckConstraint("trigger_type IN ('auto','manual')", name="ck_analysis_run_trigger"),
            sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_analysis_runs_company_id", "analysis_runs", ["company_id"])
        op.create_index(
            "uq_analysis_runs_company_active",
            "analysis_runs",
            ["company_id"],
            unique=True,
            postgresql_where=sa.text("status IN ('pending','running')"),
            sqlite_where=sa.text("status IN ('pending','running')"),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "analysis_runs",
        "company_reports",
        "individual_reports",
        "survey_responses",
        "form_questions",
        "master_questions",
        "survey_forms",
        "employees",
        "companies",
    ):
        if table in existing_tables:
            op.drop_table(table)
