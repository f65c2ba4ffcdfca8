"""API tests for the HR blueprint and the admin company feedback view.

Coverage
--------
    - questionnaire routes are HR only; submit, status, 400 on bad payloads,
      409 on a second batch
    - POST /hr/employees: own company, skip existing, 409 on company email
    - POST /feedback: HR and Manager only, 400 on non-numeric figures
    - GET /admin/companies/<company>/feedback: Admin only
"""

import pytest

from sentiment.models.company import Employee


@pytest.fixture()
def acme(make):
    company = make.company(name="Acme")
    hr = make.employee(company, code="HR-1", role=Employee.ROLE_HR, name="Hana")
    return company, hr


@pytest.fixture()
def question(make):
    return make.feedback_question("Was the rollout smooth?", options=("Yes", "No"))


class TestQuestionnaire:
    def test_employee_forbidden(self, client, acme, make, auth_headers):
        employee = make.employee(acme[0])
        res = client.get("/api/v1/hr/feedback/questions", headers=auth_headers(employee))
        assert res.status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/v1/hr/feedback/questions").status_code == 401

    def test_list_submit_and_status(self, client, acme, question, auth_headers):
        headers = auth_headers(acme[1])
        res = client.get("/api/v1/hr/feedback/questions", headers=headers)
        assert res.status_code == 200
        questions = res.get_json()["questions"]
        assert [q["question_id"] for q in questions] == [question.id]
        option_id = questions[0]["options"][1]["option_id"]

        res = client.post(
            "/api/v1/hr/feedback/responses",
            json={"responses": [{"question_id": question.id, "option_id": option_id}]},
            headers=headers,
        )
        assert res.status_code == 201
        assert res.get_json()["success"] is True

        res = client.get("/api/v1/hr/feedback/responses", headers=headers)
        assert res.get_json() == {"success": True, "hasSubmitted": True, "count": 1}

        res = client.post(
            "/api/v1/hr/feedback/responses",
            json={"responses": [{"question_id": question.id, "option_id": option_id}]},
            headers=headers,
        )
        assert res.status_code == 409

    @pytest.mark.parametrize("body", [{}, {"responses": "yes"}, {"responses": []}])
    def test_bad_payload(self, client, acme, question, auth_headers, body):
        res = client.post("/api/v1/hr/feedback/responses", json=body, headers=auth_headers(acme[1]))
        assert res.status_code == 400


class TestHrEmployees:
    def test_create_then_skip(self, client, acme, auth_headers):
        company, hr = acme
        body = {"employeesID": "E-7", "name": "Nia", "email": "nia@acme.test"}
        res = client.post("/api/v1/hr/employees", json=body, headers=auth_headers(hr))
        assert res.status_code == 201
        assert res.get_json()["employee"]["company_id"] == company.id

        res = client.post("/api/v1/hr/employees", json=body, headers=auth_headers(hr))
        assert res.status_code == 200
        assert res.get_json()["created"] is False

    def test_email_conflict(self, client, acme, make, auth_headers):
        make.employee(acme[0], code="E-1")
        res = client.post(
            "/api/v1/hr/employees",
            json={"employeesID": "E-2", "email": "e-1@example.com"},
            headers=auth_headers(acme[1]),
        )
        assert res.status_code == 409

    def test_manager_forbidden(self, client, acme, make, auth_headers):
        manager = make.employee(acme[0], role=Employee.ROLE_MANAGER)
        res = client.post("/api/v1/hr/employees", json={"employeesID": "E-2"}, headers=auth_headers(manager))
        assert res.status_code == 403


class TestExperienceFeedback:
    @pytest.mark.parametrize("role", [Employee.ROLE_HR, Employee.ROLE_MANAGER])
    def test_recorded(self, client, make, auth_headers, role):
        employee = make.employee(make.company(), role=role)
        res = client.post(
            "/api/v1/feedback",
            json={"satisfactionPercent": 75, "payWillingness": 3},
            headers=auth_headers(employee),
        )
        assert res.status_code == 201
        assert res.get_json()["feedback"]["role"] == role

    def test_employee_forbidden(self, client, make, auth_headers):
        employee = make.employee(make.company())
        res = client.post(
            "/api/v1/feedback",
            json={"satisfactionPercent": 75, "payWillingness": 3},
            headers=auth_headers(employee),
        )
        assert res.status_code == 403

    def test_non_numeric(self, client, make, auth_headers):
        manager = make.employee(make.company(), role=Employee.ROLE_MANAGER)
        res = client.post(
            "/api/v1/feedback",
            json={"satisfactionPercent": "75", "payWillingness": 3},
            headers=auth_headers(manager),
        )
        assert res.status_code == 400
        assert "satisfactionPercent" in res.get_json()["details"]


class TestAdminCompanyFeedback:
    def test_admin_reads_company_feedback(self, client, acme, make, question, auth_headers):
        admin = make.employee(make.company(name="Platform"), code="ADM", role=Employee.ROLE_ADMIN)
        client.post(
            "/api/v1/hr/feedback/responses",
            json={"responses": [{"question_id": question.id, "option_id": question.options[0].id}]},
            headers=auth_headers(acme[1]),
        )
        res = client.get(f"/api/v1/admin/companies/{acme[0].id}/feedback", headers=auth_headers(admin))
        assert res.status_code == 200
        feedback_list = res.get_json()["feedbackList"]
        assert feedback_list == [{
            "employeesID": "HR-1",
            "name": "Hana",
            "feedback": [{
                "question_id": question.id,
                "question_text": "Was the rollout smooth?",
                "question_type": "choice",
                "answer": "Yes",
            }],
        }]

    def test_hr_forbidden(self, client, acme, auth_headers):
        res = client.get("/api/v1/admin/companies/Acme/feedback", headers=auth_headers(acme[1]))
        assert res.status_code == 403

    def test_unknown_company(self, client, make, auth_headers):
        admin = make.employee(make.company(name="Platform"), code="ADM", role=Employee.ROLE_ADMIN)
        res = client.get("/api/v1/admin/companies/Nowhere/feedback", headers=auth_headers(admin))
        assert res.status_code == 404
