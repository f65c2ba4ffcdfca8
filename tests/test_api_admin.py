"""API tests for the admin blueprint and the tenant directory service.

Coverage
--------
    - Admin only (HR gets 403)
    - create / list companies; blank, numeric and duplicate names rejected
    - create / list employees by company id or name; validation and conflicts
    - cross-company report status, report and reset (onlyFilled)
"""

import pytest

from sentiment.models.company import Employee


@pytest.fixture()
def admin(make):
    home = make.company(name="Platform")
    return make.employee(home, code="ADM", role=Employee.ROLE_ADMIN)


class TestAccess:
    def test_hr_forbidden(self, client, make, auth_headers):
        company = make.company()
        hr = make.employee(company, role=Employee.ROLE_HR)
        assert client.get("/api/v1/admin/companies", headers=auth_headers(hr)).status_code == 403


class TestCompanies:
    def test_create_and_list(self, client, admin, auth_headers):
        res = client.post("/api/v1/admin/companies", json={"name": "  Acme  "}, headers=auth_headers(admin))
        assert res.status_code == 201
        assert res.get_json()["name"] == "Acme"
        assert res.get_json()["employee_count"] == 0

        res = client.get("/api/v1/admin/companies", headers=auth_headers(admin))
        items = {c["name"]: c["employee_count"] for c in res.get_json()["items"]}
        assert items == {"Acme": 0, "Platform": 1}

    @pytest.mark.parametrize("body", [{}, {"name": "   "}, {"name": "12345"}])
    def test_invalid_names(self, client, admin, auth_headers, body):
        res = client.post("/api/v1/admin/companies", json=body, headers=auth_headers(admin))
        assert res.status_code == 400

    def test_duplicate_name(self, client, admin, auth_headers):
        client.post("/api/v1/admin/companies", json={"name": "Acme"}, headers=auth_headers(admin))
        res = client.post("/api/v1/admin/companies", json={"name": "Acme"}, headers=auth_headers(admin))
        assert res.status_code == 409


class TestEmployees:
    def test_create_by_name_and_list_by_id(self, client, admin, make, auth_headers):
        company = make.company(name="Acme")
        res = client.post(
            "/api/v1/admin/companies/Acme/employees",
            json={"employee_id": "E-1", "name": "Ada", "email": "ADA@acme.test", "role": "HR"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["email"] == "ada@acme.test"
        assert body["role"] == Employee.ROLE_HR
        assert body["is_filled"] is False

        res = client.get(f"/api/v1/admin/companies/{company.id}/employees", headers=auth_headers(admin))
        assert [e["employee_id"] for e in res.get_json()["items"]] == ["E-1"]

    @pytest.mark.parametrize("body, field", [
        ({"name": "Ada", "email": "a@x.test"}, "employee_id"),
        ({"employee_id": "E-1", "name": "Ada", "email": "not-an-email"}, "email"),
        ({"employee_id": "E-1", "name": "Ada", "email": "a@x.test", "role": "CEO"}, "role"),
    ])
    def test_validation(self, client, admin, make, auth_headers, body, field):
        make.company(name="Acme")
        res = client.post("/api/v1/admin/companies/Acme/employees", json=body, headers=auth_headers(admin))
        assert res.status_code == 400
        assert field in res.get_json()["details"]

    def test_duplicate_code(self, client, admin, make, auth_headers):
        company = make.company(name="Acme")
        make.employee(company, code="E-1")
        res = client.post(
            "/api/v1/admin/companies/Acme/employees",
            json={"employee_id": "E-1", "name": "Other", "email": "other@acme.test"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 409

    def test_unknown_company(self, client, admin, auth_headers):
        res = client.get("/api/v1/admin/companies/Nowhere/employees", headers=auth_headers(admin))
        assert res.status_code == 404


class TestCompanyReports:
    def test_report_status_and_report(self, client, admin, make, auth_headers):
        company = make.company(name="Acme")
        form = make.form()
        make.fill(make.employee(company), form)
        make.company_report(company, result={"score": 3})

        res = client.get("/api/v1/admin/companies/Acme/report/status", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["has_report"] is True

        res = client.get("/api/v1/admin/companies/Acme/report", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["result"] == {"score": 3}

    def test_reset_only_filled(self, client, admin, make, auth_headers):
        company = make.company(name="Acme")
        form = make.form()
        make.fill(make.employee(company), form)
        make.employee(company)
        make.company_report(company)

        res = client.post("/api/v1/admin/companies/Acme/reset?onlyFilled=true", headers=auth_headers(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["employees_reset"] == 1
        assert body["company_reports_deleted"] == 1

        res = client.get("/api/v1/admin/companies/Acme/report", headers=auth_headers(admin))
        assert res.status_code == 409
