"""Tests for sentiment.services.access_guard — company isolation.

Coverage
--------
    - company references by id and by name; unknown → NotFoundError
    - HR of company A is Forbidden on company B whether B exists or not
    - Admin may target any company
    - employee lookups: unknown → NotFound, other company → Forbidden,
      self allowed only with allow_self, plain employees cannot see peers
"""

import pytest

from sentiment.core.exceptions import ForbiddenError, NotFoundError
from sentiment.models.company import Employee
from sentiment.services.access_guard import (
    Caller,
    ensure_company_access,
    get_employee_for_caller,
    resolve_company,
    resolve_company_for,
)


@pytest.fixture()
def two_companies(make):
    a = make.company(name="Alpha")
    b = make.company(name="Beta")
    return {
        "a": a,
        "b": b,
        "hr_a": make.employee(a, code="HR-A", role=Employee.ROLE_HR),
        "emp_a": make.employee(a, code="EMP-A"),
        "emp_a2": make.employee(a, code="EMP-A2"),
        "emp_b": make.employee(b, code="EMP-B"),
        "admin": make.employee(b, code="ADM", role=Employee.ROLE_ADMIN),
    }


class TestResolveCompany:
    def test_by_id_and_by_name(self, two_companies):
        a = two_companies["a"]
        assert resolve_company(a.id).id == a.id
        assert resolve_company(str(a.id)).id == a.id
        assert resolve_company("Alpha").id == a.id

    @pytest.mark.parametrize("ref", ["Nope", 9999, "", None])
    def test_unknown_is_not_found(self, two_companies, ref):
        with pytest.raises(NotFoundError):
            resolve_company(ref)


class TestResolveCompanyFor:
    def test_default_is_own_company(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        assert resolve_company_for(caller).id == two_companies["a"].id

    def test_own_company_by_name_or_id(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        a = two_companies["a"]
        assert resolve_company_for(caller, "Alpha").id == a.id
        assert resolve_company_for(caller, str(a.id)).id == a.id

    @pytest.mark.parametrize("ref", ["Beta", "DoesNotExist", "424242"])
    def test_hr_of_a_is_forbidden_on_anything_else(self, two_companies, ref):
        caller = Caller.from_employee(two_companies["hr_a"])
        with pytest.raises(ForbiddenError):
            resolve_company_for(caller, ref)

    def test_hr_of_a_forbidden_on_b_by_id(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        with pytest.raises(ForbiddenError):
            resolve_company_for(caller, two_companies["b"].id)

    def test_admin_may_target_any_company(self, two_companies):
        caller = Caller.from_employee(two_companies["admin"])
        assert resolve_company_for(caller, "Alpha").id == two_companies["a"].id

    def test_admin_unknown_company_is_not_found(self, two_companies):
        caller = Caller.from_employee(two_companies["admin"])
        with pytest.raises(NotFoundError):
            resolve_company_for(caller, "DoesNotExist")


class TestEnsureCompanyAccess:
    def test_mismatch_raises(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        with pytest.raises(ForbiddenError) as exc_info:
            ensure_company_access(caller, two_companies["b"].id)
        assert exc_info.value.target_company_id == two_companies["b"].id

    def test_admin_passes(self, two_companies):
        caller = Caller.from_employee(two_companies["admin"])
        ensure_company_access(caller, two_companies["a"].id)


class TestGetEmployeeForCaller:
    def test_hr_sees_own_company_employee(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        assert get_employee_for_caller(caller, "EMP-A").employee_code == "EMP-A"

    def test_hr_forbidden_on_other_company_employee(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        with pytest.raises(ForbiddenError):
            get_employee_for_caller(caller, "EMP-B")

    def test_unknown_code_is_not_found(self, two_companies):
        caller = Caller.from_employee(two_companies["hr_a"])
        with pytest.raises(NotFoundError):
            get_employee_for_caller(caller, "GHOST")

    def test_self_only_with_allow_self(self, two_companies):
        caller = Caller.from_employee(two_companies["emp_a"])
        assert get_employee_for_caller(caller, "EMP-A", allow_self=True).employee_code == "EMP-A"
        with pytest.raises(ForbiddenError):
            get_employee_for_caller(caller, "EMP-A")

    def test_employee_cannot_see_peer(self, two_companies):
        caller = Caller.from_employee(two_companies["emp_a"])
        with pytest.raises(ForbiddenError):
            get_employee_for_caller(caller, "EMP-A2", allow_self=True)

    def test_admin_sees_everyone(self, two_companies):
        caller = Caller.from_employee(two_companies["admin"])
        assert get_employee_for_caller(caller, "EMP-A").company_id == two_companies["a"].id


class TestCaller:
    def test_role_flags(self, two_companies):
        hr = Caller.from_employee(two_companies["hr_a"])
        emp = Caller.from_employee(two_companies["emp_a"])
        admin = Caller.from_employee(two_companies["admin"])
        assert hr.is_hr and hr.can_manage_reports and not hr.is_admin
        assert not emp.can_manage_reports
        assert admin.is_admin and admin.can_manage_reports
