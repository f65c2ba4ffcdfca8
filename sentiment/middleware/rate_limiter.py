"""
Per-blueprint limits on the shared Flask-Limiter instance.

Survey submission gets its own budget (SURVEY_RATE_LIMIT); reports, hr and
admin share WRITE_RATE_LIMIT because they write rows or start analysis
runs and resets. Health probes are exempt. Nothing is limited under TESTING.
"""

import logging

logger = logging.getLogger(__name__)

_LIMIT_KEYS = {
    "survey": ("SURVEY_RATE_LIMIT", "30/minute"),
    "reports": ("WRITE_RATE_LIMIT", "60/minute"),
    "hr": ("WRITE_RATE_LIMIT", "60/minute"),
    "admin": ("WRITE_RATE_LIMIT", "60/minute"),
}


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        logger.debug("Rate limits skipped under TESTING")
        return

    applied = {}
    for bp_name, (config_key, fallback) in _LIMIT_KEYS.items():
        blueprint = app.blueprints.get(bp_name)
        if blueprint is None:
            continue
        limit = app.config.get(config_key, fallback)
        limiter.limit(limit)(blueprint)
        applied[bp_name] = limit

    health = app.blueprints.get("health_bp")
    if health is not None:
        limiter.exempt(health)

    logger.info("Rate limits applied: %s", ", ".join(f"{k}={v}" for k, v in applied.items()))
