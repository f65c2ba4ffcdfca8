"""
Role Decorators — JWT-aware role checks for route protection.

Usage:
    @bp.route("/company/report", methods=["GET"])
    @require_role(Employee.ROLE_HR, Employee.ROLE_ADMIN)
    def company_report():
        caller = g.caller
        ...

    @bp.route("/employees/me/status", methods=["GET"])
    @require_caller
    def my_status():
        ...

Admin is the superuser and passes every role check.
"""

import functools
import logging

from flask import g

from sentiment.models.company import Employee
from sentiment.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _unauthenticated():
    message = getattr(g, "jwt_error", None) or "Authentication required"
    return api_error(E.UNAUTHORIZED, message)


def require_caller(f):
    """Decorator: require an authenticated employee (any role)."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "caller", None) is None:
            return _unauthenticated()
        return f(*args, **kwargs)
    return decorated


def require_role(*roles: str):
    """
    Decorator: require the caller to hold one of ``roles``.

    Args:
        roles: Employee.ROLE_* values, e.g. Employee.ROLE_HR
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            caller = getattr(g, "caller", None)
            if caller is None:
                return _unauthenticated()

            if caller.role != Employee.ROLE_ADMIN and caller.role not in roles:
                logger.warning(
                    "Employee %s denied: role %s not in %s on %s",
                    caller.employee_code, caller.role, roles, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN, "Permission denied",
                    details={"required_roles": list(roles)},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator
