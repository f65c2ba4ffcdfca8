"""
Bearer token parsing.

Populates ``g.jwt_employee_code``, ``g.jwt_role`` and ``g.jwt_company_id``
from a valid access token. A missing, expired or forged token never aborts
the request here: the reason lands in ``g.jwt_error`` and the tenant
context middleware or the route decorators turn it into a 401 when the
endpoint needs a caller.
"""

import logging

import jwt as pyjwt
from flask import g, request

from sentiment.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"
PUBLIC_PREFIXES = ("/api/v1/health",)


def _bearer_token() -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token.strip()


def init_jwt_middleware(app):
    @app.before_request
    def _read_bearer_token():
        g.jwt_employee_code = g.jwt_role = g.jwt_company_id = g.jwt_error = None

        path = request.path
        if not path.startswith(API_PREFIX) or path.startswith(PUBLIC_PREFIXES):
            return
        token = _bearer_token()
        if token is None:
            return

        try:
            claims = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Bearer token rejected on %s: %s", path, exc)
            g.jwt_error = "Invalid token"
            return

        g.jwt_employee_code = str(claims["sub"])
        g.jwt_role = claims.get("role")
        g.jwt_company_id = claims.get("company_id")
