"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter in ``docflow/__init__.py`` carries no default limit; this module
attaches one limit string to each registered blueprint, read from config:

    WRITE_RATE_LIMIT   workflow blueprints (templates, assignments,
                       checklists, tasks, locks)
    READ_RATE_LIMIT    ops (jobs, audit)

``/api/v1/health`` is registered on the app itself and is never limited.
Skipped entirely when TESTING is set.
"""

import logging

logger = logging.getLogger(__name__)

LIMIT_GROUPS = {
    "WRITE_RATE_LIMIT": ("templates", "assignments", "checklists", "tasks", "locks"),
    "READ_RATE_LIMIT": ("ops",),
}


def init_rate_limits(app, limiter):
    """Call after every blueprint is registered."""
    if app.config.get("TESTING"):
        logger.info("Rate limiter disabled (TESTING=True)")
        return

    applied = {}
    for config_key, blueprint_names in LIMIT_GROUPS.items():
        limit = app.config.get(config_key)
        if not limit:
            continue
        for name in blueprint_names:
            bp = app.blueprints.get(name)
            if bp is None:
                continue
            limiter.limit(limit)(bp)
            applied[name] = limit

    logger.info("Rate limits applied: %s", applied)
