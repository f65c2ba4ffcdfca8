"""
Employee Sentiment Survey Platform
Blueprint registry and shared error handlers.
"""

import logging

from flask import request
from sqlalchemy.exc import SQLAlchemyError

from sentiment.core.exceptions import (
    AnalysisRejectedError,
    AnalysisTimeoutError,
    AnalysisUnavailableError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    NotReadyError,
    ValidationError,
)
from sentiment.models import db
from sentiment.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_limit(default_limit=20, max_limit=100):
    """Read ``?limit=`` from the query string, clamped to ``max_limit``."""
    try:
        limit = int(request.args.get("limit", default_limit))
    except (ValueError, TypeError):
        limit = default_limit
    return max(1, min(limit, max_limit))


def parse_bool_arg(name, default=False):
    """Truthy query flags: ``true``, ``1``, ``yes``."""
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def register_error_handlers(bp):
    """Map service exceptions to JSON error responses for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(NotReadyError)
    def _handle_not_ready(error: NotReadyError):
        return api_error(
            E.NOT_READY, str(error),
            details={"total": error.total, "filled": error.filled, "reason": error.reason},
        )

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @bp.errorhandler(AnalysisUnavailableError)
    def _handle_unavailable(error: AnalysisUnavailableError):
        return api_error(
            E.ANALYSIS_UNAVAILABLE, "AI analysis service is not available",
            details={"endpoint": error.endpoint, "reason": str(error)},
        )

    @bp.errorhandler(AnalysisTimeoutError)
    def _handle_timeout(error: AnalysisTimeoutError):
        return api_error(
            E.ANALYSIS_TIMEOUT, "AI analysis service timed out",
            details={"endpoint": error.endpoint, "timeout_seconds": error.timeout},
        )

    @bp.errorhandler(AnalysisRejectedError)
    def _handle_rejected(error: AnalysisRejectedError):
        return api_error(
            E.ANALYSIS_REJECTED, "AI analysis service rejected the request",
            details={
                "endpoint": error.endpoint,
                "upstream_status": error.status_code,
                "upstream_error": error.detail,
            },
        )

    @bp.errorhandler(SQLAlchemyError)
    def _handle_db(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error on endpoint=%s", request.endpoint)
        return api_error(E.DATABASE, "Database error")
