"""single_batch_and_hr_feedback

One survey answer per employee and question; HR questionnaire and
experience feedback tables.

Revision ID: b3d8f02a6c17
Revises: 7c1e5a9d2b40
Create Date: 2026-10-18 15:10:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "b3d8f02a6c17"
down_revision = "7c1e5a9d2b40"
branch_labels = None
depends_on = None

_RESPONSE_UNIQUE = "uq_survey_response_employee_question"


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "survey_responses" in existing_tables:
        names = {uc["name"] for uc in inspector.get_unique_constraints("survey_responses")}
        if _RESPONSE_UNIQUE not in names:
            # batch mode rebuilds the table on SQLite
            with op.batch_alter_table("survey_responses") as batch_op:
                batch_op.create_unique_constraint(_RESPONSE_UNIQUE, ["employee_id", "form_question_id"])

    if "hr_feedback_questions" not in existing_tables:
        op.create_table(
            "hr_feedback_questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.Column("question_type", sa.String(length=20), nullable=False, server_default="choice"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.CheckConstraint(
                "question_type IN ('choice','text','amount')", name="ck_hr_feedback_question_type",
            ),
            sa.PrimaryKeyConstraint("id"),
        )

    if "hr_feedback_options" not in existing_tables:
        op.create_table(
            "hr_feedback_options",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("question_id", sa.Integer(), nullable=False),
            sa.Column("option_text", sa.String(length=255), nullable=False),
            sa.Column("option_value", sa.String(length=100), nullable=True),
            sa.ForeignKeyConstraint(["question_id"], ["hr_feedback_questions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_hr_feedback_options_question_id", "hr_feedback_options", ["question_id"])

    if "hr_feedback_responses" not in existing_tables:
        op.create_table(
            "hr_feedback_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.Integer(), nullable=False),
            sa.Column("question_id", sa.Integer(), nullable=False),
            sa.Column("option_id", sa.Integer(), nullable=True),
            sa.Column("response_text", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["question_id"], ["hr_feedback_questions.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["option_id"], ["hr_feedback_options.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("employee_id", "question_id", name="uq_hr_feedback_employee_question"),
        )
        op.create_index("ix_hr_feedback_responses_employee_id", "hr_feedback_responses", ["employee_id"])

    if "experience_feedback" not in existing_tables:
        op.create_table(
            "experience_feedback",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("satisfaction_percent", sa.Float(), nullable=False),
            sa.Column("pay_per_employee", sa.Float(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_experience_feedback_employee_id", "experience_feedback", ["employee_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "experience_feedback",
        "hr_feedback_responses",
        "hr_feedback_options",
        "hr_feedback_questions",
    ):
        if table in existing_tables:
            op.drop_table(table)

    if "survey_responses" in existing_tables:
        names = {uc["name"] for uc in inspector.get_unique_constraints("survey_responses")}
        if _RESPONSE_UNIQUE in names:
            with op.batch_alter_table("survey_responses") as batch_op:
                batch_op.drop_constraint(_RESPONSE_UNIQUE, type_="unique")
