"""
Access tokens for survey participants, HR and admins.

The identity collaborator authenticates people and calls
``generate_access_token``; this service only signs and verifies. Claims:

    sub         employee code (unique inside a company)
    role        Employee | Manager | HR | Admin, as issued; the DB role wins
    company_id  home company, omitted for platform admins without one
    type        "access"
    iat/exp/jti standard claims, lifetime from JWT_ACCESS_EXPIRES (seconds)
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 8 * 60 * 60


def _signing_key() -> str:
    config = current_app.config
    return config.get("JWT_SECRET_KEY") or config["SECRET_KEY"]


def generate_access_token(employee_code: str, role: str, company_id: int | None) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    claims = {
        "sub": employee_code,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=lifetime),
        "jti": uuid.uuid4().hex,
    }
    if company_id is not None:
        claims["company_id"] = company_id
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """Verify signature and expiry, then the token type and subject.

    PyJWT errors propagate: ``ExpiredSignatureError`` for stale tokens,
    ``InvalidTokenError`` for everything else.
    """
    claims = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    token_type = claims.get("type")
    if token_type != expected_type:
        raise jwt.InvalidTokenError(f"{token_type or 'untyped'} token used where {expected_type} is required")
    if not claims.get("sub"):
        raise jwt.InvalidTokenError("Token carries no employee code")
    return claims


def decode_access_token(token: str) -> dict:
    return decode_token(token, ACCESS_TOKEN_TYPE)
