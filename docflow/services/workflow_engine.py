"""
Shared review engine for transition-table driven entities.

Every state machine in the package is a dict of the form::

    {"action": {"from": [allowed states], "to": target | [targets], "remarks": bool}}

validate_transition() reports whether an action is legal from the current
state (the same shape the lifecycle services have always returned), and
apply_transition() enforces it: illegal source state → InvalidStateError,
missing mandatory remarks → ValidationFailedError. State is always checked
before remarks, so a double-submitted decision is reported as an illegal
transition rather than as bad input.

audit_event() flushes the pending transition before queueing its audit row,
so a lost row_version race is reported as ConcurrentModificationError at
the point of the transition.
"""

import logging

from docflow.core.exceptions import InvalidStateError, StaleSubmissionError, ValidationFailedError
from docflow.models.audit import write_audit
from docflow.utils.helpers import flush_or_raise

logger = logging.getLogger(__name__)


def _targets(rule: dict) -> list[str]:
    to = rule["to"]
    return list(to) if isinstance(to, (list, tuple)) else [to]


def validate_transition(table: dict, current_status: str, action: str) -> dict:
    """Validate whether an action is valid for the current state."""
    rule = table.get(action)
    if not rule:
        return {"valid": False, "from": current_status, "to": None,
                "reason": f"Unknown action: {action}"}

    if current_status not in rule["from"]:
        return {"valid": False, "from": current_status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{current_status}'"}

    return {"valid": True, "from": current_status, "to": rule["to"], "reason": None}


def available_actions(table: dict, current_status: str) -> list[str]:
    return [action for action, rule in table.items() if current_status in rule["from"]]


def apply_transition(
    entity,
    table: dict,
    action: str,
    *,
    remarks: str | None = None,
    target: str | None = None,
    label: str | None = None,
) -> tuple[str, str]:
    """
    Move ``entity.status`` along ``table[action]``.

    Args:
        entity: Model instance with ``status`` and ``to_dict()``.
        table: Transition table.
        action: Key in ``table``.
        remarks: Checked when the rule sets ``remarks``.
        target: Picks one of several targets when the rule lists more than one.
        label: Entity name used in messages; defaults to the class name.

    Returns:
        (previous_status, new_status)

    Raises:
        ValidationFailedError: unknown action, bad target, or missing remarks.
        InvalidStateError: action not allowed from the current status.
    """
    label = label or type(entity).__name__
    rule = table.get(action)
    if rule is None:
        raise ValidationFailedError(
            f"Unknown action '{action}' for {label}",
            details={"allowed_actions": sorted(table)},
        )

    previous = entity.status
    if previous not in rule["from"]:
        raise InvalidStateError(
            f"Cannot '{action}' {label} #{entity.id} from status '{previous}'",
            current=entity.to_dict(),
            details={"allowed_from": list(rule["from"])},
        )

    if rule.get("remarks") and not (remarks or "").strip():
        raise ValidationFailedError(
            f"Remarks are required to '{action}' {label}",
            current=entity.to_dict(),
            details={"field": "remarks"},
        )

    targets = _targets(rule)
    if target is None:
        if len(targets) != 1:
            raise ValidationFailedError(f"'{action}' needs an explicit target status")
        target = targets[0]
    elif target not in targets:
        raise ValidationFailedError(
            f"'{target}' is not a valid outcome of '{action}'",
            details={"allowed_targets": targets},
        )

    entity.status = target
    return previous, target


def check_expected_version(entity, expected_version, *, label: str | None = None) -> None:
    """
    Reject a decision aimed at a version other than the entity's latest.

    ``expected_version`` of None means the caller did not pin a version.
    """
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError) as exc:
        raise ValidationFailedError("version must be an integer", details={"field": "version"}) from exc
    if expected != entity.version:
        label = label or type(entity).__name__
        raise StaleSubmissionError(
            f"{label} #{entity.id} is at version {entity.version}, not {expected}",
            current=entity.to_dict(),
            details={"latest_version": entity.version, "requested_version": expected},
        )


def audit_event(*, entity_type, entity_id, action, actor, project_id=None, diff=None, current=None) -> None:
    """
    Flush the transition, then queue one audit row in the same transaction.

    The flush is where a lost optimistic-lock race or a unique-index clash
    surfaces, so it goes through ``flush_or_raise`` and reaches the caller
    as ConcurrentModificationError. Only building the audit row may fail
    quietly; the row itself is inserted by the caller's commit.
    """
    flush_or_raise(current=current)
    try:
        write_audit(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            project_id=project_id,
            diff=diff,
        )
    except (TypeError, ValueError):
        logger.warning(
            "Audit row skipped for %s %s/%s; malformed payload",
            action, entity_type, entity_id, exc_info=True,
        )
