"""
Tests: Authorization Gate — role expansion and the capability lookup.
"""

import pytest

from docflow.core.exceptions import ForbiddenError
from docflow.services.authorization import (
    OPERATION_CAPABILITIES,
    ROLE_CAPABILITIES,
    Actor,
    can_transition,
    capabilities_for_roles,
    check_transition,
)


def test_can_transition_is_a_pure_lookup():
    assert can_transition({"checklists:verify"}, "checklist.verify") is True
    assert can_transition({"checklists:submit"}, "checklist.verify") is False
    assert can_transition(set(), "submission.review") is False


def test_unknown_operation_is_never_allowed():
    everything = set(OPERATION_CAPABILITIES.values())
    assert can_transition(everything, "assignment.delete") is False


def test_role_expansion_unions_roles():
    caps = capabilities_for_roles(["reviewer", "staff"])
    assert "submissions:review" in caps
    assert "submissions:upload" in caps
    assert "tasks:manage-locks" not in caps


def test_unknown_role_grants_nothing():
    assert capabilities_for_roles(["intern"]) == frozenset()


def test_admin_cannot_act_as_scheduler():
    assert "locks:auto" not in ROLE_CAPABILITIES["admin"]
    assert "tasks:manage-locks" in ROLE_CAPABILITIES["admin"]
    assert "locks:auto" in ROLE_CAPABILITIES["system"]


def test_actor_from_claims_adds_explicit_permissions():
    actor = Actor.from_claims({"sub": 7, "roles": ["client"], "permissions": ["checklists:verify"]})
    assert actor.id == "7"
    assert actor.has("checklists:verify")
    assert actor.has("submissions:upload")
    assert not actor.has("submissions:review")


def test_check_transition_raises_forbidden_with_required_capability(staff):
    with pytest.raises(ForbiddenError) as exc:
        check_transition(staff, "submission.review")
    assert exc.value.http_status == 403
    assert exc.value.details["required_capability"] == "submissions:review"
    assert exc.value.actor_id == "staff-1"


def test_check_transition_rejects_missing_actor():
    with pytest.raises(ForbiddenError):
        check_transition(None, "template.create")


def test_check_transition_passes_for_capable_actor(reviewer):
    check_transition(reviewer, "file.send_back")
