"""
Shared pytest fixtures for the Employee Sentiment Survey Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - fake_gateway: in-process analysis service wired into the app (autouse,
      so no test ever reaches the network by accident)
    - make: row factory for companies, employees, forms, answers, reports
      and HR questionnaire questions
    - auth_headers: Bearer header builder for an employee
"""

import itertools
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from sentiment import create_app
from sentiment.integrations.analysis_gateway import GatewayResult
from sentiment.models import db as _db
from sentiment.models.company import Company, Employee
from sentiment.models.feedback import HrFeedbackOption, HrFeedbackQuestion
from sentiment.models.report import CompanyReport, IndividualReport
from sentiment.models.survey import FormQuestion, MasterQuestion, SurveyForm, SurveyResponse
from sentiment.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Analysis service double ──────────────────────────────────────────────


class FakeGateway:
    """Stands in for AnalysisGateway.

    On success it writes the same rows the real service would: /analyze
    stores an IndividualReport, /analyze-company stores a CompanyReport.

    Knobs:
        fail_employees: employee code → AnalysisError raised for that employee
        company_error:  AnalysisError raised by analyze_company
        on_company:     callable(company_id) invoked before the company
                        report is written (observe state mid-orchestration)
        healthy:        result of health()
    """

    base_url = "http://analysis.test"

    def __init__(self):
        self.employee_calls = []
        self.company_calls = []
        self.regenerate_calls = []
        self.fail_employees = {}
        self.company_error = None
        self.on_company = None
        self.healthy = True

    def _employee(self, code):
        return _db.session.execute(
            select(Employee).where(Employee.employee_code == code)
        ).scalar_one()

    def analyze_employee(self, payload):
        self.employee_calls.append(payload)
        code = payload["employeeId"]
        if code in self.fail_employees:
            raise self.fail_employees[code]
        employee = self._employee(code)
        _db.session.add(IndividualReport(
            employee_id=employee.id,
            result={"employeeId": code, "questions": sorted(payload["answers"])},
        ))
        _db.session.commit()
        return GatewayResult(True, 200, {"employeeId": code, "status": "ok"}, None, 1)

    def analyze_company(self, company_id):
        self.company_calls.append(company_id)
        if self.on_company is not None:
            self.on_company(company_id)
        if self.company_error is not None:
            raise self.company_error
        _db.session.add(CompanyReport(
            company_id=company_id,
            result={"companyId": company_id, "sentiment": "positive"},
        ))
        _db.session.commit()
        return GatewayResult(True, 200, {"companyId": company_id, "status": "ok"}, None, 1)

    def regenerate_report(self, employee_code, company_name):
        self.regenerate_calls.append((employee_code, company_name))
        employee = self._employee(employee_code)
        _db.session.add(IndividualReport(
            employee_id=employee.id,
            result={"employeeId": employee_code, "regenerated": True},
        ))
        _db.session.commit()
        return GatewayResult(True, 200, {"employeeId": employee_code, "status": "ok"}, None, 1)

    def health(self):
        if self.healthy:
            return GatewayResult(True, 200, {"status": "ok"}, None, 2)
        return GatewayResult(False, None, None, "Analysis service is not reachable", 0)


@pytest.fixture(autouse=True)
def fake_gateway(app):
    """Swap the app's gateway (and the runner's) for a FakeGateway."""
    runner = app.extensions["analysis_runner"]
    original_gateway = app.extensions["analysis_gateway"]
    original_runner_gateway = runner.gateway

    fake = FakeGateway()
    app.extensions["analysis_gateway"] = fake
    runner.gateway = fake
    yield fake
    app.extensions["analysis_gateway"] = original_gateway
    runner.gateway = original_runner_gateway


@pytest.fixture()
def runner(app):
    """The app's AnalysisRunner (inline under TestingConfig)."""
    return app.extensions["analysis_runner"]


# ── Row factory ──────────────────────────────────────────────────────────


class Factory:
    """Creates committed rows; API requests read them through the same session."""

    def __init__(self):
        self._seq = itertools.count(1)

    def company(self, name=None):
        n = next(self._seq)
        company = Company(name=name or f"Company {n}")
        _db.session.add(company)
        _db.session.commit()
        return company

    def employee(self, company, code=None, role=Employee.ROLE_EMPLOYEE, is_filled=False, name=None):
        n = next(self._seq)
        code = code or f"E{n:04d}"
        employee = Employee(
            company_id=company.id,
            employee_code=code,
            name=name or f"Employee {code}",
            email=f"{code.lower()}@example.com",
            role=role,
            is_filled=is_filled,
        )
        _db.session.add(employee)
        _db.session.commit()
        return employee

    def form(self, numbers=(1, 2, 3), name="Engagement Survey"):
        """Form with one question per master question number, inserted in the given order."""
        form = SurveyForm(name=name)
        _db.session.add(form)
        _db.session.flush()
        for number in numbers:
            mq = MasterQuestion(question_number=number, question_type="text")
            _db.session.add(mq)
            _db.session.flush()
            _db.session.add(FormQuestion(
                form_id=form.id,
                master_question_id=mq.id,
                question_text=f"Question {number}?",
            ))
        _db.session.commit()
        return form

    @staticmethod
    def questions(form):
        """Form questions ordered by question number."""
        return _db.session.execute(
            select(FormQuestion)
            .join(MasterQuestion, FormQuestion.master_question_id == MasterQuestion.id)
            .where(FormQuestion.form_id == form.id)
            .order_by(MasterQuestion.question_number)
        ).scalars().all()

    def answers(self, form, text="Fine"):
        """Submission payload answering every question of ``form``."""
        return [
            {"form_question_id": q.id, "answer_text": f"{text} {i}"}
            for i, q in enumerate(self.questions(form), start=1)
        ]

    def fill(self, employee, form, with_answers=True):
        """Store answers directly and mark the employee filled."""
        if with_answers:
            for q in self.questions(form):
                _db.session.add(SurveyResponse(
                    employee_id=employee.id,
                    form_id=form.id,
                    form_question_id=q.id,
                    answer_text=f"Answer to {q.question_text}",
                ))
        employee.is_filled = True
        _db.session.commit()
        return employee

    def individual_report(self, employee, result=None, created_at=None):
        report = IndividualReport(
            employee_id=employee.id,
            result=result or {"summary": "ok"},
            created_at=created_at or datetime.now(timezone.utc),
        )
        _db.session.add(report)
        _db.session.commit()
        return report

    def company_report(self, company, result=None, created_at=None):
        report = CompanyReport(
            company_id=company.id,
            result=result or {"summary": "ok"},
            created_at=created_at or datetime.now(timezone.utc),
        )
        _db.session.add(report)
        _db.session.commit()
        return report

    def feedback_question(self, text="How clear was the setup?", question_type="choice",
                          options=("Clear", "Unclear"), is_active=True):
        """HR questionnaire question with one option per entry of ``options``."""
        question = HrFeedbackQuestion(question_text=text, question_type=question_type, is_active=is_active)
        question.options = [HrFeedbackOption(option_text=o, option_value=o.lower()) for o in options]
        _db.session.add(question)
        _db.session.commit()
        return question


@pytest.fixture()
def make():
    """Row factory (see Factory)."""
    return Factory()


# ── Auth ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """Return a function building Bearer headers for an employee."""
    def _headers(employee):
        token = generate_access_token(employee.employee_code, employee.role, employee.company_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
