"""
Scheduled jobs.

Jobs:
    - auto_lock_sweep: locks every overdue, not-done task
"""

from __future__ import annotations

from typing import Any

from docflow.services import lock_service
from docflow.services.scheduler_service import register_job


@register_job("auto_lock_sweep")
def auto_lock_sweep(app) -> dict[str, Any]:
    """Lock tasks whose due date has passed and that are not done."""
    return lock_service.sweep_overdue_tasks()
