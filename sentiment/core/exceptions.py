"""
Errors raised by the survey and report services.

Services never build HTTP responses. Each blueprint installs the shared
handlers, which turn these types into JSON errors with a fixed status.

Usage:
    from sentiment.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Employee", resource_id="E-42")
    raise ValidationError("answers must be a non-empty list", details={"answers": "..."})

Mapping (see ``sentiment.blueprints.register_error_handlers``):
    NotFoundError            → 404
    ForbiddenError           → 403
    ValidationError          → 400
    NotReadyError            → 409
    ConflictError            → 409
    AnalysisUnavailableError → 503
    AnalysisTimeoutError     → 504
    AnalysisRejectedError    → 502
"""


class NotFoundError(Exception):
    """Raised when a requested company or employee does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Company", "Employee").
        resource_id: The id / name that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id!r}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when a caller targets a record owned by another company.

    Args:
        message: Explanation returned to the caller.
        caller_company_id: Company of the caller (logged, never returned).
        target_company_id: Company of the target (logged, never returned).
    """

    def __init__(
        self,
        message: str = "Access denied",
        caller_company_id: int | None = None,
        target_company_id: int | None = None,
    ) -> None:
        self.caller_company_id = caller_company_id
        self.target_company_id = target_company_id
        super().__init__(message)


class ValidationError(Exception):
    """Raised when a payload is malformed or violates an input rule.

    Args:
        message: What was wrong with the input.
        details: Field name to problem, returned as the error details.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotReadyError(Exception):
    """Raised when the company report is requested before every non-HR
    employee has submitted.

    Args:
        total: Non-HR employee count at the time of the check.
        filled: How many of them have submitted.
        reason: "incomplete" (submissions missing) or "report_pending"
            (complete, but the analysis has not produced the report yet).
    """

    REASON_INCOMPLETE = "incomplete"
    REASON_REPORT_PENDING = "report_pending"

    def __init__(
        self,
        total: int,
        filled: int,
        message: str | None = None,
        reason: str = REASON_INCOMPLETE,
    ) -> None:
        self.total = total
        self.filled = filled
        self.reason = reason
        super().__init__(message or f"Not all employees have submitted: {filled}/{total} completed")


class ConflictError(Exception):
    """Raised when an operation collides with current state.

    Examples: a second submission while ``is_filled`` is set, a reset while
    analysis is in flight, a duplicate company name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


# ── External analysis service failures ───────────────────────────────────────


class AnalysisError(Exception):
    """Base class for failures of the external analysis service.

    Attributes:
        kind: Machine-readable failure kind stored on AnalysisRun.error_kind.
        endpoint: Service path that failed (e.g. "/analyze-company").
    """

    kind = "analysis_error"

    def __init__(self, message: str, endpoint: str | None = None) -> None:
        self.endpoint = endpoint
        super().__init__(message)


class AnalysisUnavailableError(AnalysisError):
    """Connection refused / DNS failure — the service is not reachable."""

    kind = "unavailable"


class AnalysisTimeoutError(AnalysisError):
    """The service did not answer within the configured timeout."""

    kind = "timeout"

    def __init__(self, message: str, endpoint: str | None = None, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__(message, endpoint=endpoint)


class AnalysisRejectedError(AnalysisError):
    """The service answered with a non-2xx status.

    Args:
        status_code: HTTP status returned by the service.
        detail: ``error`` field of the service's JSON body, when present.
    """

    kind = "rejected"

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(message, endpoint=endpoint)
