"""
Feedback models — the HR questionnaire and HR/Manager experience feedback.

    HrFeedbackQuestion ──< HrFeedbackOption
            │
            └──< HrFeedbackResponse >── Employee (HR)

    ExperienceFeedback >── Employee (HR or Manager)

The questionnaire asks HR staff about the survey process itself. It is
separate from the employee survey: answers never count toward completion
and are never sent to the analysis service.
"""

from datetime import datetime, timezone

from sentiment.models import db


class HrFeedbackQuestion(db.Model):
    __tablename__ = "hr_feedback_questions"

    TYPE_CHOICE = "choice"
    TYPE_TEXT = "text"
    TYPE_AMOUNT = "amount"
    VALID_TYPES = {TYPE_CHOICE, TYPE_TEXT, TYPE_AMOUNT}
    # Answered with free text rather than an option
    TEXT_TYPES = {TYPE_TEXT, TYPE_AMOUNT}

    id = db.Column(db.Integer, primary_key=True)
    question_text = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(20), nullable=False, default=TYPE_CHOICE)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    options = db.relationship(
        "HrFeedbackOption", back_populates="question",
        order_by="HrFeedbackOption.id", cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.CheckConstraint(
            "question_type IN ('choice','text','amount')", name="ck_hr_feedback_question_type",
        ),
    )

    def to_dict(self, include_options=True):
        d = {
            "question_id": self.id,
            "question_text": self.question_text,
            "question_type": self.question_type,
        }
        if include_options:
            d["options"] = [o.to_dict() for o in self.options]
        return d


class HrFeedbackOption(db.Model):
    __tablename__ = "hr_feedback_options"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(
        db.Integer, db.ForeignKey("hr_feedback_questions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    option_text = db.Column(db.String(255), nullable=False)
    option_value = db.Column(db.String(100), nullable=True)

    question = db.relationship("HrFeedbackQuestion", back_populates="options")

    def to_dict(self):
        return {
            "option_id": self.id,
            "question_id": self.question_id,
            "option_text": self.option_text,
            "option_value": self.option_value,
        }


class HrFeedbackResponse(db.Model):
    __tablename__ = "hr_feedback_responses"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "question_id", name="uq_hr_feedback_employee_question"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    question_id = db.Column(
        db.Integer, db.ForeignKey("hr_feedback_questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    option_id = db.Column(
        db.Integer, db.ForeignKey("hr_feedback_options.id", ondelete="SET NULL"),
        nullable=True,
    )
    response_text = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    option = db.relationship("HrFeedbackOption")


class ExperienceFeedback(db.Model):
    """Satisfaction and willingness-to-pay figures from HR and Managers."""
    __tablename__ = "experience_feedback"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    # Role at the time of submission
    role = db.Column(db.String(20), nullable=False)
    satisfaction_percent = db.Column(db.Float, nullable=False)
    pay_per_employee = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "satisfaction_percent": self.satisfaction_percent,
            "pay_per_employee": self.pay_per_employee,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
