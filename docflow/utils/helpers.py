"""Shared helpers for services.

parse_date_input:   strict ISO date parsing (raises ValueError)
parse_datetime:     ISO datetime parsing, naive values assumed UTC
parse_int_input:    strict integer parsing for ids and ordinals (raises ValueError)
require_int_field:  parse_int_input for a named request field (raises ValidationFailedError)
commit_or_raise:    commit the unit of work, translating lost races
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from docflow.core.exceptions import ConcurrentModificationError, ValidationFailedError
from docflow.models import db

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, DD.MM.YYYY, date objects.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        try:
            return datetime.strptime(value, "%d.%m.%Y").date()
        except ValueError as exc:
            raise ValueError(
                "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
            ) from exc


def parse_int_input(value, *, minimum=None):
    """Parse an int or an all-digit string, raising ValueError on anything else.

    Booleans, floats, lists and objects are rejected rather than coerced.
    """
    if isinstance(value, bool):
        raise ValueError("Expected an integer.")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        number = int(value.strip())
    else:
        raise ValueError("Expected an integer.")
    if minimum is not None and number < minimum:
        raise ValueError(f"Expected an integer >= {minimum}.")
    return number


def require_int_field(value, field, *, minimum=1):
    if value is None or value == "":
        raise ValidationFailedError(f"{field} is required", details={"field": field})
    try:
        return parse_int_input(value, minimum=minimum)
    except ValueError as exc:
        raise ValidationFailedError(f"{field}: {exc}", details={"field": field}) from exc


def parse_datetime(value):
    """Parse an ISO datetime (or date) string into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError("Invalid datetime format. Use ISO 8601.") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ── Database commit helper ───────────────────────────────────────────────────

def _run_or_raise(operation, label, on_integrity_error, current):
    try:
        operation()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on %s: %s", label, exc.orig)
        if on_integrity_error is not None:
            raise on_integrity_error from exc
        raise ConcurrentModificationError(
            "Concurrent modification detected; refresh and retry", current=current,
        ) from exc
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale row version on %s: %s", label, exc)
        raise ConcurrentModificationError(
            "Resource was modified by another request; refresh and retry", current=current,
        ) from exc


def commit_or_raise(*, on_integrity_error=None, current=None):
    """Commit the current SQLAlchemy session or raise a workflow error.

    IntegrityError → ``on_integrity_error`` if given, else
    ConcurrentModificationError (a unique/latest index lost the race).
    StaleDataError → ConcurrentModificationError (optimistic row_version
    mismatch).

    The session is rolled back before raising. Nothing is retried.

    Usage::

        commit_or_raise(on_integrity_error=DuplicatePendingError("..."))
    """
    _run_or_raise(db.session.commit, "commit", on_integrity_error, current)


def flush_or_raise(*, on_integrity_error=None, current=None):
    """Same translation as :func:`commit_or_raise`, for mid-transaction flushes."""
    _run_or_raise(db.session.flush, "flush", on_integrity_error, current)
