"""
Survey models — forms, questions and per-employee answers.

    SurveyForm ──< FormQuestion >── MasterQuestion
                        │
                        └──< SurveyResponse >── Employee

SurveyResponse rows are written only as one atomic batch per submission
(see ``submission_service.submit``) and removed only by the reset
operations in ``report_service``.
"""

from datetime import datetime, timezone

from sentiment.models import db


class SurveyForm(db.Model):
    __tablename__ = "survey_forms"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    questions = db.relationship(
        "FormQuestion", back_populates="form", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
        }


class MasterQuestion(db.Model):
    """Question catalogue shared by all forms; carries the ordering number."""
    __tablename__ = "master_questions"

    id = db.Column(db.Integer, primary_key=True)
    question_number = db.Column(db.Integer, nullable=False)
    question_type = db.Column(db.String(30), nullable=False, default="text")
    options = db.Column(db.JSON, nullable=True)
    helper_text = db.Column(db.Text, nullable=True)


class FormQuestion(db.Model):
    __tablename__ = "form_questions"

    id = db.Column(db.Integer, primary_key=True)
    form_id = db.Column(
        db.Integer, db.ForeignKey("survey_forms.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    master_question_id = db.Column(
        db.Integer, db.ForeignKey("master_questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_text = db.Column(db.Text, nullable=False)

    form = db.relationship("SurveyForm", back_populates="questions")
    master_question = db.relationship("MasterQuestion")

    def to_dict(self):
        mq = self.master_question
        return {
            "form_question_id": self.id,
            "form_id": self.form_id,
            "form_name": self.form.name if self.form else None,
            "question_number": mq.question_number if mq else None,
            "question_type": mq.question_type if mq else None,
            "options": mq.options if mq else None,
            "helper_text": mq.helper_text if mq else None,
            "question_text": self.question_text,
        }


class SurveyResponse(db.Model):
    __tablename__ = "survey_responses"
    # One answer per question per employee and cycle; a second batch cannot land.
    __table_args__ = (
        db.UniqueConstraint("employee_id", "form_question_id", name="uq_survey_response_employee_question"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    form_id = db.Column(
        db.Integer, db.ForeignKey("survey_forms.id", ondelete="CASCADE"),
        nullable=False,
    )
    form_question_id = db.Column(
        db.Integer, db.ForeignKey("form_questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    answer_text = db.Column(db.Text, nullable=True)
    answer_choice = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    employee = db.relationship("Employee", back_populates="responses")
    form_question = db.relationship("FormQuestion")

    @property
    def answer(self):
        return self.answer_text or self.answer_choice or ""

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "form_id": self.form_id,
            "form_question_id": self.form_question_id,
            "answer_text": self.answer_text,
            "answer_choice": self.answer_choice,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
