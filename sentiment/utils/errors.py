"""JSON error bodies shared by blueprints and middleware.

Every error leaves the API as ``{"error": <message>, "code": <E.*>}`` plus an
optional ``details`` object, e.g. the readiness counts of a company report::

    return api_error(E.NOT_READY, "Survey still open",
                     details={"total": 3, "filled": 2, "reason": "incomplete"})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes. ``ERR_ANALYSIS_*`` codes describe the external analysis service."""

    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    NOT_READY = "ERR_NOT_READY"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    ANALYSIS_REJECTED = "ERR_ANALYSIS_REJECTED"
    ANALYSIS_UNAVAILABLE = "ERR_ANALYSIS_UNAVAILABLE"
    ANALYSIS_TIMEOUT = "ERR_ANALYSIS_TIMEOUT"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# Grouped by HTTP status; codes missing here answer 400.
_STATUS_GROUPS: dict[int, tuple[str, ...]] = {
    400: (E.VALIDATION_INVALID,),
    401: (E.UNAUTHORIZED,),
    403: (E.FORBIDDEN,),
    404: (E.NOT_FOUND,),
    405: (E.METHOD_NOT_ALLOWED,),
    409: (E.CONFLICT_STATE, E.NOT_READY),
    413: (E.PAYLOAD_TOO_LARGE,),
    429: (E.RATE_LIMITED,),
    500: (E.DATABASE, E.INTERNAL),
    502: (E.ANALYSIS_REJECTED,),
    503: (E.ANALYSIS_UNAVAILABLE,),
    504: (E.ANALYSIS_TIMEOUT,),
}

STATUS_FOR_CODE: dict[str, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build the ``(response, status)`` pair for an error.

    ``status`` overrides the code's usual status. Empty ``details`` are omitted.
    """
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_FOR_CODE.get(code, 400)
