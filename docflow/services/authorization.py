"""
Authorization Gate — capability lookup consulted before every mutation.

Two tables:
    OPERATION_CAPABILITIES: operation name → capability it requires
    ROLE_CAPABILITIES:      role name → capabilities it grants

An actor's capability set is the union of its roles' grants and any explicit
``permissions`` carried by its token. The gate is stateless: nothing here
reads or writes the database.

Usage:
    from docflow.services.authorization import Actor, check_transition

    actor = Actor.from_claims({"sub": "u-1", "roles": ["reviewer"]})
    check_transition(actor, "submission.review")   # raises ForbiddenError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from docflow.core.exceptions import ForbiddenError

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Capability tables
# ═════════════════════════════════════════════════════════════════════════════

OPERATION_CAPABILITIES: dict[str, str] = {
    # Template catalogue
    "template.create": "templates:manage",
    "template.supersede": "templates:manage",
    "checklist_template.create": "templates:manage",
    # Assignments / submissions
    "assignment.assign": "assignments:manage",
    "assignment.upload": "submissions:upload",
    "assignment.upload_on_behalf": "submissions:upload-on-behalf",
    "submission.review": "submissions:review",
    # Checklist instances
    "checklist.create": "checklists:manage",
    "checklist.update_item": "checklists:edit",
    "checklist.upload_file": "checklists:edit",
    "checklist.submit_for_review": "checklists:submit",
    "checklist.verify": "checklists:verify",
    "checklist.finalize": "checklists:finalize",
    "checklist.revise": "checklists:manage",
    # Checklist files
    "file.submit": "checklists:submit",
    "file.start_review": "checklists:review",
    "file.send_back": "checklists:review",
    "file.resubmit": "checklists:edit",
    "file.verify": "checklists:verify",
    # Tasks and locks
    "task.create": "tasks:manage",
    "task.update_status": "tasks:edit",
    "lock.auto_lock": "locks:auto",
    "lock.manual_lock": "tasks:manage-locks",
    "lock.direct_unlock": "tasks:manage-locks",
    "lock.review_unlock": "tasks:manage-locks",
    "lock.request_unlock": "tasks:request-unlock",
    # Operations
    "jobs.run": "jobs:run",
}

ALL_CAPABILITIES = frozenset(OPERATION_CAPABILITIES.values())

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "admin": ALL_CAPABILITIES - {"locks:auto"},
    "reviewer": frozenset({
        "submissions:review",
        "checklists:review",
        "checklists:verify",
        "tasks:edit",
        "tasks:request-unlock",
    }),
    "staff": frozenset({
        "submissions:upload",
        "checklists:edit",
        "checklists:submit",
        "tasks:edit",
        "tasks:request-unlock",
    }),
    "client": frozenset({
        "submissions:upload",
        "checklists:edit",
        "checklists:submit",
        "tasks:request-unlock",
    }),
    "system": frozenset({"locks:auto", "jobs:run"}),
}


# ═════════════════════════════════════════════════════════════════════════════
# Actor
# ═════════════════════════════════════════════════════════════════════════════

def capabilities_for_roles(roles, permissions=()) -> frozenset[str]:
    """Expand role names into capabilities; unknown roles grant nothing."""
    caps: set[str] = set(permissions or ())
    for role in roles or ():
        caps.update(ROLE_CAPABILITIES.get(role, ()))
    return frozenset(caps)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity as seen by the services."""

    id: str
    roles: frozenset[str] = field(default_factory=frozenset)
    capabilities: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_claims(cls, claims: dict) -> "Actor":
        roles = frozenset(claims.get("roles") or ())
        return cls(
            id=str(claims["sub"]),
            roles=roles,
            capabilities=capabilities_for_roles(roles, claims.get("permissions") or ()),
        )

    @classmethod
    def with_roles(cls, actor_id: str, *roles: str) -> "Actor":
        return cls(id=actor_id, roles=frozenset(roles), capabilities=capabilities_for_roles(roles))

    def has(self, capability: str) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "roles": sorted(self.roles),
            "capabilities": sorted(self.capabilities),
        }


SYSTEM_ACTOR = Actor.with_roles("system", "system")


# ═════════════════════════════════════════════════════════════════════════════
# Gate
# ═════════════════════════════════════════════════════════════════════════════

def required_capability(operation: str) -> str | None:
    return OPERATION_CAPABILITIES.get(operation)


def can_transition(capabilities, operation: str) -> bool:
    """
    Pure lookup: does this capability set allow the operation?

    Unknown operations are never allowed.
    """
    required = OPERATION_CAPABILITIES.get(operation)
    if required is None:
        return False
    return required in capabilities


def check_transition(actor: Actor | None, operation: str) -> None:
    """
    Assert the actor may perform the operation.

    Raises:
        ForbiddenError: actor missing, or lacking the required capability.
    """
    capabilities = actor.capabilities if actor else frozenset()
    if can_transition(capabilities, operation):
        return
    actor_id = actor.id if actor else None
    logger.warning(
        "Forbidden: %s attempted %s", actor_id, operation,
        extra={"actor": actor_id, "operation": operation},
    )
    raise ForbiddenError(actor_id, operation, required_capability(operation))
