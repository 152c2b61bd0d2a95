"""
Tests: Assignment State Machine — upload, review, stale decisions.

    assigned → submitted → verified
    submitted → incomplete → submitted
"""

import pytest
from sqlalchemy import text

from docflow.core.exceptions import (
    ConcurrentModificationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StaleSubmissionError,
    ValidationFailedError,
)
from docflow.models import db as _db
from docflow.models.assignment import Submission
from docflow.models.audit import list_audit
from docflow.services import assignment_service, template_service


# ── Helpers ──────────────────────────────────────────────────────────────────


def _make_template(admin, title="Engagement letter"):
    return template_service.create_template({"title": title, "category": "onboarding"}, admin)


def _make_assignment(admin, project_id=1, title="Engagement letter"):
    tpl = _make_template(admin, title)
    return assignment_service.assign_template(tpl["id"], project_id, admin, assignee_id="client-1")


def _upload(assignment_id, actor, artifact, name="letter.pdf", **kwargs):
    return assignment_service.upload(assignment_id, artifact(name), actor, **kwargs)


# ── Assign ───────────────────────────────────────────────────────────────────


def test_assign_template_starts_assigned(admin):
    a = _make_assignment(admin)
    assert a["status"] == "assigned"
    assert a["assigned_by"] == "admin-1"
    assert a["current_remarks"] is None
    assert a["verified_at"] is None


def test_assign_same_template_twice_to_project(admin):
    a = _make_assignment(admin)
    with pytest.raises(InvalidStateError):
        assignment_service.assign_template(a["template_file_id"], 1, admin)


def test_assign_requires_capability(admin, staff):
    tpl = _make_template(admin)
    with pytest.raises(ForbiddenError):
        assignment_service.assign_template(tpl["id"], 1, staff)


def test_assign_unknown_template(admin):
    with pytest.raises(NotFoundError):
        assignment_service.assign_template(404, 1, admin)


@pytest.mark.parametrize("project_id", [{"x": 1}, "abc", True, 0, 1.5])
def test_assign_rejects_malformed_project_id(admin, project_id):
    tpl = _make_template(admin)
    with pytest.raises(ValidationFailedError) as exc:
        assignment_service.assign_template(tpl["id"], project_id, admin)
    assert exc.value.details == {"field": "project_id"}
    assert list_audit("assignment") == []


def test_assign_accepts_numeric_string_project_id(admin):
    tpl = _make_template(admin)
    a = assignment_service.assign_template(tpl["id"], "12", admin)
    assert a["project_id"] == 12
    assert list_audit("assignment", a["id"])[0]["project_id"] == 12


def test_assign_rejects_malformed_template_id(admin):
    with pytest.raises(ValidationFailedError) as exc:
        assignment_service.assign_template({"id": 1}, 1, admin)
    assert exc.value.details == {"field": "template_file_id"}


# ── Scenario A ───────────────────────────────────────────────────────────────


def test_reject_then_resubmit_then_approve(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)

    r1 = _upload(a["id"], client_actor, artifact, "v1.pdf", comment="first draft")
    v1 = r1["submission"]
    assert v1["version"] == 1
    assert v1["client_comment"] == "first draft"
    assert r1["assignment"]["status"] == "submitted"

    rej = assignment_service.review(v1["id"], "reject", reviewer, remarks="fix page 2")
    assert rej["assignment"]["status"] == "incomplete"
    assert rej["assignment"]["current_remarks"] == "fix page 2"
    assert rej["submission"]["status"] == "rejected"
    assert rej["submission"]["review_remarks"] == "fix page 2"

    r2 = _upload(a["id"], client_actor, artifact, "v2.pdf")
    v2 = r2["submission"]
    assert v2["version"] == 2
    assert r2["assignment"]["status"] == "submitted"
    assert r2["assignment"]["current_remarks"] is None

    history = assignment_service.get_history(a["id"])
    assert [(s["version"], s["is_latest"]) for s in history] == [(2, True), (1, False)]

    ok = assignment_service.review(v2["id"], "approve", reviewer)
    assert ok["assignment"]["status"] == "verified"
    assert ok["assignment"]["verified_by"] == "reviewer-1"
    assert ok["assignment"]["verified_at"] is not None
    assert ok["submission"]["status"] == "approved"
    assert "download_disabled" in ok["side_effects"]


# ── Upload rules ─────────────────────────────────────────────────────────────


def test_verified_is_terminal(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]
    assignment_service.review(s["id"], "approve", reviewer)

    with pytest.raises(InvalidStateError) as exc:
        _upload(a["id"], client_actor, artifact, "late.pdf")
    assert exc.value.current["status"] == "verified"
    assert Submission.query.filter_by(assignment_id=a["id"]).count() == 1


def test_upload_while_submitted_is_invalid(admin, client_actor, artifact):
    a = _make_assignment(admin)
    _upload(a["id"], client_actor, artifact)
    with pytest.raises(InvalidStateError):
        _upload(a["id"], client_actor, artifact, "again.pdf")


def test_upload_with_malformed_artifact_changes_nothing(admin, client_actor):
    a = _make_assignment(admin)
    with pytest.raises(ValidationFailedError):
        assignment_service.upload(a["id"], {"file_path": "x"}, client_actor)
    assert assignment_service.get_assignment(a["id"])["status"] == "assigned"


def test_upload_on_behalf_needs_its_own_capability(admin, staff, artifact):
    a = _make_assignment(admin)
    with pytest.raises(ForbiddenError):
        _upload(a["id"], staff, artifact, source="admin_on_behalf")

    r = _upload(a["id"], admin, artifact, source="admin_on_behalf")
    assert r["submission"]["submission_source"] == "admin_on_behalf"


def test_upload_unknown_source(admin, client_actor, artifact):
    a = _make_assignment(admin)
    with pytest.raises(ValidationFailedError):
        _upload(a["id"], client_actor, artifact, source="email")


def test_upload_unknown_assignment(client_actor, artifact):
    with pytest.raises(NotFoundError):
        _upload(999, client_actor, artifact)


# ── Review rules ─────────────────────────────────────────────────────────────


def test_reject_without_remarks_fails(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]

    for remarks in (None, "", "   "):
        with pytest.raises(ValidationFailedError):
            assignment_service.review(s["id"], "reject", reviewer, remarks=remarks)
    assert assignment_service.get_assignment(a["id"])["status"] == "submitted"


def test_review_twice_is_invalid_state(admin, reviewer, client_actor, artifact):
    """Scenario C: a double-clicked approve."""
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]

    assignment_service.review(s["id"], "approve", reviewer)
    with pytest.raises(InvalidStateError) as exc:
        assignment_service.review(s["id"], "approve", reviewer)
    assert exc.value.current["status"] == "verified"


def test_double_reject_is_invalid_state_not_validation(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]
    assignment_service.review(s["id"], "reject", reviewer, remarks="blurry")

    with pytest.raises(InvalidStateError):
        assignment_service.review(s["id"], "reject", reviewer)


@pytest.mark.parametrize("decision", ["approve", "reject"])
def test_reviewing_superseded_submission_is_stale(admin, reviewer, client_actor, artifact, decision):
    a = _make_assignment(admin)
    v1 = _upload(a["id"], client_actor, artifact, "v1.pdf")["submission"]
    assignment_service.review(v1["id"], "reject", reviewer, remarks="wrong year")
    v2 = _upload(a["id"], client_actor, artifact, "v2.pdf")["submission"]

    with pytest.raises(StaleSubmissionError) as exc:
        assignment_service.review(v1["id"], decision, reviewer, remarks="late decision")
    assert exc.value.details["latest_submission_id"] == v2["id"]
    assert exc.value.current["status"] == "submitted"


def test_stale_wins_over_verified_state(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    v1 = _upload(a["id"], client_actor, artifact, "v1.pdf")["submission"]
    assignment_service.review(v1["id"], "reject", reviewer, remarks="again")
    v2 = _upload(a["id"], client_actor, artifact, "v2.pdf")["submission"]
    assignment_service.review(v2["id"], "approve", reviewer)

    with pytest.raises(StaleSubmissionError):
        assignment_service.review(v1["id"], "approve", reviewer)


def test_forbidden_is_reported_before_state(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]
    assignment_service.review(s["id"], "approve", reviewer)

    # Nobody may review now, but the client is told it lacks the capability.
    with pytest.raises(ForbiddenError):
        assignment_service.review(s["id"], "approve", client_actor)


def test_unknown_decision(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact)["submission"]
    with pytest.raises(ValidationFailedError):
        assignment_service.review(s["id"], "maybe", reviewer)


def test_review_unknown_submission(reviewer):
    with pytest.raises(NotFoundError):
        assignment_service.review(12345, "approve", reviewer)


# ── Download & project views ────────────────────────────────────────────────


def test_download_disabled_once_verified(admin, reviewer, client_actor, artifact):
    a = _make_assignment(admin)
    s = _upload(a["id"], client_actor, artifact, "letter.pdf")["submission"]

    ref = assignment_service.get_download(s["id"], reviewer)
    assert ref["file_path"] == "uploads/letter.pdf"
    assert ref["version"] == 1

    assignment_service.review(s["id"], "approve", reviewer)
    with pytest.raises(InvalidStateError):
        assignment_service.get_download(s["id"], reviewer)


def test_project_history_spans_assignments(admin, client_actor, artifact):
    a1 = _make_assignment(admin, project_id=5, title="Letter")
    a2 = _make_assignment(admin, project_id=5, title="KYC form")
    _make_assignment(admin, project_id=6, title="Other project")
    _upload(a1["id"], client_actor, artifact, "letter.pdf")
    _upload(a2["id"], client_actor, artifact, "kyc.pdf")

    assert {a["id"] for a in assignment_service.list_project_assignments(5)} == {a1["id"], a2["id"]}
    history = assignment_service.get_project_history(5)
    assert len(history) == 2
    assert {h["template"]["title"] for h in history} == {"Letter", "KYC form"}
    assert all(h["assignment_status"] == "submitted" for h in history)


def test_get_assignment_includes_latest_submission(admin, client_actor, artifact):
    a = _make_assignment(admin)
    assert assignment_service.get_assignment(a["id"])["latest_submission"] is None

    _upload(a["id"], client_actor, artifact, "v1.pdf")
    latest = assignment_service.get_assignment(a["id"])["latest_submission"]
    assert latest["version"] == 1
    assert latest["is_latest"] is True


# ── Lost races ───────────────────────────────────────────────────────────────


def test_review_losing_a_row_version_race_is_a_concurrent_modification(
    admin, reviewer, client_actor, artifact, monkeypatch,
):
    a = _make_assignment(admin)
    sub = _upload(a["id"], client_actor, artifact)["submission"]
    real_apply = assignment_service.apply_transition

    def apply_then_race(entity, *args, **kwargs):
        result = real_apply(entity, *args, **kwargs)
        _db.session.execute(
            text("UPDATE template_assignments SET row_version = row_version + 1 WHERE id = :id"),
            {"id": entity.id},
        )
        return result

    monkeypatch.setattr(assignment_service, "apply_transition", apply_then_race)
    with pytest.raises(ConcurrentModificationError):
        assignment_service.review(sub["id"], "approve", reviewer)

    monkeypatch.undo()
    assert assignment_service.get_assignment(a["id"])["status"] == "submitted"
    assert list_audit("submission", sub["id"]) == []
    assert assignment_service.review(sub["id"], "approve", reviewer)["assignment"]["status"] == "verified"
