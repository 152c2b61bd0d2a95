"""
Tests: Item/Field Checklist State Machine.

Covers typed item values, completeness, the instance lifecycle
(submit → verify → finalize / revise) and the per-file review loop.
"""

import pytest

from docflow.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StaleSubmissionError,
    ValidationFailedError,
)
from docflow.models.audit import list_audit
from docflow.services import checklist_service, lock_service
from docflow.services.lock_service import FINALIZED_UNLOCK_NOTE

ITEMS = [
    {"item_code": "company", "label": "Company name", "item_type": "text",
     "is_mandatory": True, "sort_order": 1},
    {"item_code": "employees", "label": "Employees", "item_type": "number",
     "is_mandatory": True, "sort_order": 2},
    {"item_code": "incorporated", "label": "Incorporated on", "item_type": "date",
     "sort_order": 3},
    {"item_code": "entity_type", "label": "Entity type", "item_type": "dropdown",
     "dropdown_options": ["LLC", "PLC"], "sort_order": 4},
    {"item_code": "vat_registered", "label": "VAT registered", "item_type": "boolean",
     "sort_order": 5},
    {"item_code": "certificate", "label": "Certificate of incorporation", "item_type": "file",
     "is_mandatory": True, "sort_order": 6},
    {"item_code": "supporting", "label": "Supporting documents", "item_type": "multi_file",
     "sort_order": 7},
]


# ── Helpers ──────────────────────────────────────────────────────────────────


def _make_checklist(admin, project_id=1, items=ITEMS):
    tpl = checklist_service.create_template({"name": "Onboarding", "items": items}, admin)
    checklist = checklist_service.create_checklist(project_id, tpl["id"], admin)
    codes = {i["item_code"]: i["id"] for i in checklist["items"]}
    return checklist, codes


def _fill_all(checklist, codes, actor, artifact):
    checklist_service.update_item(checklist["id"], codes["company"], "ACME Ltd", actor)
    checklist_service.update_item(checklist["id"], codes["employees"], 42, actor)
    return checklist_service.upload_file(
        checklist["id"], codes["certificate"], artifact("certificate.pdf"), actor,
    )


def _ready_for_verification(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)
    _fill_all(checklist, codes, staff, artifact)
    checklist_service.submit_for_review(checklist["id"], staff)
    return checklist, codes


def _file_under_review(admin, staff, reviewer, artifact):
    checklist, codes = _make_checklist(admin)
    cfile = _fill_all(checklist, codes, staff, artifact)["file"]
    checklist_service.submit_file(cfile["id"], staff)
    checklist_service.start_file_review(cfile["id"], reviewer)
    return checklist, cfile


# ── Instances & completeness ────────────────────────────────────────────────


def test_create_checklist_has_one_empty_item_per_definition(admin):
    checklist, codes = _make_checklist(admin)
    assert checklist["status"] == "draft"
    assert checklist["version"] == 1
    assert checklist["completeness_percent"] == 0.0
    assert list(codes) == [i["item_code"] for i in ITEMS]
    assert all(i["verified_status"] == "pending" for i in checklist["items"])


def test_completeness_rises_with_each_mandatory_item(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)

    r1 = checklist_service.update_item(checklist["id"], codes["company"], "ACME Ltd", staff)
    assert r1["completeness"]["completeness_percent"] == 33.33
    assert r1["checklist"]["status"] == "in_progress"
    assert r1["side_effects"] == []

    # Optional items do not move the needle.
    r_opt = checklist_service.update_item(checklist["id"], codes["vat_registered"], True, staff)
    assert r_opt["completeness"]["completeness_percent"] == 33.33

    r2 = checklist_service.update_item(checklist["id"], codes["employees"], "12", staff)
    assert r2["completeness"]["completeness_percent"] == 66.67
    assert r2["item"]["value_number"] == 12.0

    r3 = checklist_service.upload_file(checklist["id"], codes["certificate"], artifact(), staff)
    assert r3["completeness"]["completeness_percent"] == 100.0
    assert r3["side_effects"] == ["checklist_eligible_for_verification"]
    assert r3["file"]["status"] == "uploaded"
    assert r3["file"]["version"] == 1
    assert checklist_service.get_checklist(checklist["id"])["completeness_percent"] == 100.0


def test_clearing_a_value_lowers_completeness(admin, staff):
    checklist, codes = _make_checklist(admin)
    checklist_service.update_item(checklist["id"], codes["company"], "ACME Ltd", staff)
    result = checklist_service.update_item(checklist["id"], codes["company"], "", staff)

    assert result["completeness"]["completeness_percent"] == 0.0
    assert result["item"]["value_text"] is None


def test_whitespace_text_does_not_count_as_filled(admin, staff):
    checklist, codes = _make_checklist(admin)
    result = checklist_service.update_item(checklist["id"], codes["company"], "   ", staff)
    assert result["completeness"]["completeness_percent"] == 0.0


def test_no_mandatory_items_means_complete(admin):
    checklist, _ = _make_checklist(admin, items=[{"item_code": "notes", "label": "Notes"}])
    assert checklist["completeness_percent"] == 100.0


def test_completeness_lists_missing_items(admin, staff):
    checklist, codes = _make_checklist(admin)
    checklist_service.update_item(checklist["id"], codes["company"], "ACME Ltd", staff)

    result = checklist_service.completeness(checklist["id"])
    assert result["mandatory_items"] == 3
    assert result["filled_mandatory"] == 1
    assert [m["item_code"] for m in result["missing_mandatory_items"]] == ["employees", "certificate"]


@pytest.mark.parametrize("code, value", [
    ("employees", "many"),
    ("employees", True),
    ("incorporated", "31/02/2020"),
    ("entity_type", "GmbH"),
    ("vat_registered", "yes"),
    ("company", 12),
])
def test_typed_values_are_validated(admin, staff, code, value):
    checklist, codes = _make_checklist(admin)
    with pytest.raises(ValidationFailedError):
        checklist_service.update_item(checklist["id"], codes[code], value, staff)
    assert checklist_service.get_checklist(checklist["id"])["status"] == "draft"


def test_typed_values_are_stored_in_their_columns(admin, staff):
    checklist, codes = _make_checklist(admin)
    d = checklist_service.update_item(checklist["id"], codes["incorporated"], "01.02.2020", staff)
    assert d["item"]["value_date"] == "2020-02-01"
    e = checklist_service.update_item(checklist["id"], codes["entity_type"], "PLC", staff)
    assert e["item"]["value_text"] == "PLC"
    b = checklist_service.update_item(checklist["id"], codes["vat_registered"], False, staff)
    assert b["item"]["value_boolean"] is False


def test_file_items_and_value_items_do_not_mix(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)
    with pytest.raises(ValidationFailedError):
        checklist_service.update_item(checklist["id"], codes["certificate"], "cert.pdf", staff)
    with pytest.raises(ValidationFailedError):
        checklist_service.upload_file(checklist["id"], codes["company"], artifact(), staff)


def test_single_file_item_holds_one_file(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)
    checklist_service.upload_file(checklist["id"], codes["certificate"], artifact("a.pdf"), staff)
    with pytest.raises(InvalidStateError):
        checklist_service.upload_file(checklist["id"], codes["certificate"], artifact("b.pdf"), staff)


def test_multi_file_item_accepts_several_files(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)
    checklist_service.upload_file(checklist["id"], codes["supporting"], artifact("a.pdf"), staff)
    result = checklist_service.upload_file(checklist["id"], codes["supporting"], artifact("b.pdf"), staff)
    assert len(result["item"]["files"]) == 2


def test_item_from_another_checklist_is_not_found(admin, staff):
    first, _ = _make_checklist(admin, project_id=1)
    _, other_codes = _make_checklist(admin, project_id=2)
    with pytest.raises(NotFoundError):
        checklist_service.update_item(first["id"], other_codes["company"], "ACME", staff)


def test_one_active_checklist_per_project_and_template(admin):
    checklist, _ = _make_checklist(admin)
    with pytest.raises(InvalidStateError):
        checklist_service.create_checklist(1, checklist["template_id"], admin)


def test_create_checklist_unknown_template(admin):
    with pytest.raises(NotFoundError):
        checklist_service.create_checklist(1, 404, admin)


@pytest.mark.parametrize("project_id", [{"x": 1}, "abc", [1], None])
def test_create_checklist_rejects_malformed_project_id(admin, project_id):
    tpl = checklist_service.create_template({"name": "Onboarding", "items": ITEMS}, admin)
    with pytest.raises(ValidationFailedError) as exc:
        checklist_service.create_checklist(project_id, tpl["id"], admin)
    assert exc.value.details == {"field": "project_id"}


def test_create_checklist_rejects_malformed_template_id(admin):
    with pytest.raises(ValidationFailedError) as exc:
        checklist_service.create_checklist(1, "first", admin)
    assert exc.value.details == {"field": "template_id"}


@pytest.mark.parametrize("sort_order", ["first", {"n": 1}, -1, 2.5])
def test_template_item_rejects_malformed_sort_order(admin, sort_order):
    item = {"item_code": "company", "label": "Company name", "sort_order": sort_order}
    with pytest.raises(ValidationFailedError) as exc:
        checklist_service.create_template({"name": "Onboarding", "items": [item]}, admin)
    assert exc.value.details == {"position": 0, "field": "sort_order"}


def test_template_item_sort_order_accepts_digit_strings(admin):
    item = {"item_code": "company", "label": "Company name", "sort_order": "4"}
    tpl = checklist_service.create_template({"name": "Onboarding", "items": [item]}, admin)
    assert tpl["items"][0]["sort_order"] == 4


# ── Submit / verify / finalize ──────────────────────────────────────────────


def test_submit_for_review_lists_missing_mandatory_items(admin, staff):
    checklist, codes = _make_checklist(admin)
    checklist_service.update_item(checklist["id"], codes["company"], "ACME Ltd", staff)

    with pytest.raises(ValidationFailedError) as exc:
        checklist_service.submit_for_review(checklist["id"], staff)
    missing = exc.value.details["missing_mandatory_items"]
    assert [m["item_code"] for m in missing] == ["employees", "certificate"]
    assert exc.value.details["completeness_percent"] == 33.33
    assert checklist_service.get_checklist(checklist["id"])["status"] == "in_progress"


def test_submitted_checklist_is_read_only(admin, staff, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    assert checklist_service.get_checklist(checklist["id"])["status"] == "ready_for_verification"

    with pytest.raises(InvalidStateError):
        checklist_service.update_item(checklist["id"], codes["company"], "Other", staff)
    with pytest.raises(InvalidStateError):
        checklist_service.submit_for_review(checklist["id"], staff)


def test_verify_failed_then_reopen_then_pass(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)

    failed = checklist_service.verify(
        checklist["id"], reviewer,
        items=[
            {"item_id": codes["company"], "verified_status": "accepted"},
            {"item_id": codes["employees"], "verified_status": "needs_clarification",
             "comment": "headcount looks off"},
        ],
        comments="one question",
    )
    assert failed["checklist"]["status"] == "verified_failed"
    assert failed["side_effects"] == ["clarification_requested"]
    marks = {i["item_code"]: i for i in failed["checklist"]["items"]}
    assert marks["employees"]["verifier_comment"] == "headcount looks off"

    with pytest.raises(InvalidStateError):
        checklist_service.finalize(checklist["id"], admin)

    reopened = checklist_service.update_item(checklist["id"], codes["employees"], 40, staff)
    assert reopened["checklist"]["status"] == "in_progress"

    checklist_service.submit_for_review(checklist["id"], staff)
    passed = checklist_service.verify(
        checklist["id"], reviewer,
        items=[{"item_id": codes["employees"], "verified_status": "accepted"}],
    )
    assert passed["checklist"]["status"] == "verified_passed"
    assert passed["checklist"]["verified_by"] == "reviewer-1"
    assert passed["side_effects"] == ["checklist_eligible_for_finalize"]


def test_rewriting_a_questioned_item_clears_its_mark(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    checklist_service.verify(
        checklist["id"], reviewer,
        items=[{"item_id": codes["employees"], "verified_status": "needs_clarification",
                "comment": "headcount looks off"}],
    )

    edited = checklist_service.update_item(checklist["id"], codes["employees"], 40, staff)
    assert edited["item"]["verified_status"] == "pending"
    assert edited["item"]["verifier_comment"] == "headcount looks off"
    audit = list_audit("checklist_item", codes["employees"])[0]
    assert audit["diff"]["verified_status"] == {"old": "needs_clarification", "new": "pending"}

    checklist_service.submit_for_review(checklist["id"], staff)
    passed = checklist_service.verify(checklist["id"], reviewer)
    assert passed["checklist"]["status"] == "verified_passed"


def test_untouched_questioned_item_keeps_failing(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    checklist_service.verify(
        checklist["id"], reviewer,
        items=[{"item_id": codes["employees"], "verified_status": "needs_clarification"}],
    )
    checklist_service.update_item(checklist["id"], codes["company"], "ACME Holdings", staff)

    checklist_service.submit_for_review(checklist["id"], staff)
    again = checklist_service.verify(checklist["id"], reviewer)
    assert again["checklist"]["status"] == "verified_failed"


def test_verify_rejects_foreign_items_and_unknown_marks(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    with pytest.raises(ValidationFailedError):
        checklist_service.verify(checklist["id"], reviewer,
                                 items=[{"item_id": 99999, "verified_status": "accepted"}])
    with pytest.raises(ValidationFailedError):
        checklist_service.verify(checklist["id"], reviewer,
                                 items=[{"item_id": codes["company"], "verified_status": "fine"}])
    assert checklist_service.get_checklist(checklist["id"])["status"] == "ready_for_verification"


@pytest.mark.parametrize("item_id", [[1], {"id": 1}, "abc", None])
def test_verify_rejects_malformed_item_ids(admin, staff, reviewer, artifact, item_id):
    checklist, _ = _ready_for_verification(admin, staff, artifact)
    with pytest.raises(ValidationFailedError) as exc:
        checklist_service.verify(checklist["id"], reviewer,
                                 items=[{"item_id": item_id, "verified_status": "accepted"}])
    assert exc.value.details == {"item_id": item_id}
    assert checklist_service.get_checklist(checklist["id"])["status"] == "ready_for_verification"


def test_verify_accepts_digit_string_item_ids(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    result = checklist_service.verify(
        checklist["id"], reviewer,
        items=[{"item_id": str(codes["employees"]), "verified_status": "needs_clarification"}],
    )
    assert result["checklist"]["status"] == "verified_failed"


def test_verify_before_submission_is_invalid(admin, reviewer):
    checklist, _ = _make_checklist(admin)
    with pytest.raises(InvalidStateError):
        checklist_service.verify(checklist["id"], reviewer)


def test_verify_requires_capability(admin, staff, artifact):
    checklist, _ = _ready_for_verification(admin, staff, artifact)
    with pytest.raises(ForbiddenError):
        checklist_service.verify(checklist["id"], staff)


def test_finalize_locks_and_closes_files_and_is_idempotent(admin, staff, reviewer, artifact):
    checklist, codes = _ready_for_verification(admin, staff, artifact)
    checklist_service.verify(checklist["id"], reviewer)

    with pytest.raises(ForbiddenError):
        checklist_service.finalize(checklist["id"], reviewer)

    result = checklist_service.finalize(checklist["id"], admin)
    assert result["checklist"]["status"] == "finalized"
    assert result["side_effects"] == ["files_locked"]
    files = [f for i in result["checklist"]["items"] for f in i["files"]]
    assert len(files) == 1
    assert files[0]["status"] == "closed"
    assert files[0]["is_locked"] is True

    again = checklist_service.finalize(checklist["id"], admin)
    assert again["checklist"]["status"] == "finalized"
    assert again["side_effects"] == []

    with pytest.raises(InvalidStateError):
        checklist_service.upload_file(checklist["id"], codes["supporting"], artifact("late.pdf"), staff)
    with pytest.raises(InvalidStateError):
        checklist_service.submit_file(files[0]["id"], staff)
    with pytest.raises(InvalidStateError):
        lock_service.direct_unlock("checklist_file", files[0]["id"], admin)


def test_finalize_freezes_files_in_every_review_state(admin, staff, reviewer, artifact):
    checklist, codes = _make_checklist(admin)
    verified = _fill_all(checklist, codes, staff, artifact)["file"]
    responded = checklist_service.upload_file(
        checklist["id"], codes["supporting"], artifact("bank.pdf"), staff)["file"]
    resubmitted = checklist_service.upload_file(
        checklist["id"], codes["supporting"], artifact("ids.pdf"), staff)["file"]
    for cfile in (verified, responded, resubmitted):
        checklist_service.submit_file(cfile["id"], staff)
        checklist_service.start_file_review(cfile["id"], reviewer)
    checklist_service.verify_file(verified["id"], reviewer)
    checklist_service.send_back_file(responded["id"], reviewer, remarks="page 2 missing")
    checklist_service.send_back_file(resubmitted["id"], reviewer, remarks="blurry")
    checklist_service.resubmit_file(resubmitted["id"], artifact("ids-v2.pdf"), staff)

    checklist_service.submit_for_review(checklist["id"], staff)
    checklist_service.verify(checklist["id"], reviewer)
    result = checklist_service.finalize(checklist["id"], admin)
    files = [f for i in result["checklist"]["items"] for f in i["files"]]
    assert {(f["status"], f["is_locked"]) for f in files} == {("closed", True)}
    assert len(files) == 3

    for cfile in (verified, responded, resubmitted):
        with pytest.raises(InvalidStateError):
            checklist_service.submit_file(cfile["id"], staff)
        with pytest.raises(InvalidStateError):
            checklist_service.start_file_review(cfile["id"], reviewer)
        with pytest.raises(InvalidStateError):
            checklist_service.send_back_file(cfile["id"], reviewer, remarks="too late")
        with pytest.raises(InvalidStateError):
            checklist_service.verify_file(cfile["id"], reviewer)
        with pytest.raises(InvalidStateError):
            checklist_service.resubmit_file(cfile["id"], artifact("late.pdf"), staff)
        assert checklist_service.get_file(cfile["id"])["status"] == "closed"
    assert checklist_service.get_file_history(resubmitted["id"])[0]["version"] == 2


def test_finalize_rejects_pending_file_unlock_requests(admin, staff, reviewer, artifact):
    checklist, codes = _make_checklist(admin)
    cfile = _fill_all(checklist, codes, staff, artifact)["file"]
    lock_service.manual_lock("checklist_file", cfile["id"], admin)
    req = lock_service.request_unlock("checklist_file", cfile["id"], staff,
                                      reason="wrong scan")["unlock_request"]

    checklist_service.submit_for_review(checklist["id"], staff)
    checklist_service.verify(checklist["id"], reviewer)
    result = checklist_service.finalize(checklist["id"], admin)
    assert result["side_effects"] == ["files_locked", "unlock_requests_rejected"]

    assert lock_service.list_pending_unlock_requests() == []
    [decided] = lock_service.list_unlock_requests("checklist_file", cfile["id"])
    assert decided["status"] == "rejected"
    assert decided["reviewed_by"] == "admin-1"
    assert decided["review_note"] == FINALIZED_UNLOCK_NOTE
    assert list_audit("unlock_request", req["id"])[0]["action"] == "lock.unlock_reject"

    with pytest.raises(InvalidStateError):
        lock_service.review_unlock_request(req["id"], "approve", admin)
    with pytest.raises(InvalidStateError):
        lock_service.request_unlock("checklist_file", cfile["id"], staff, reason="one more try")
    assert lock_service.list_pending_unlock_requests() == []


# ── Revise ───────────────────────────────────────────────────────────────────


def test_revise_clones_values_without_files(admin, staff, reviewer, artifact):
    checklist, _ = _ready_for_verification(admin, staff, artifact)
    checklist_service.verify(checklist["id"], reviewer)
    checklist_service.finalize(checklist["id"], admin)

    result = checklist_service.revise(checklist["id"], admin)
    new = result["checklist"]
    assert new["version"] == 2
    assert new["status"] == "draft"
    assert new["id"] != checklist["id"]
    assert new["completeness_percent"] == 66.67
    values = {i["item_code"]: i for i in new["items"]}
    assert values["company"]["value_text"] == "ACME Ltd"
    assert values["employees"]["value_number"] == 42.0
    assert values["certificate"]["files"] == []
    assert all(i["verified_status"] == "pending" for i in new["items"])

    assert result["superseded"]["status"] == "superseded"
    assert result["superseded"]["superseded_by_id"] == new["id"]

    # The revision is now the project's active checklist.
    with pytest.raises(InvalidStateError):
        checklist_service.create_checklist(1, checklist["template_id"], admin)


def test_revise_undecided_checklist_is_invalid(admin):
    checklist, _ = _make_checklist(admin)
    with pytest.raises(InvalidStateError):
        checklist_service.revise(checklist["id"], admin)


# ── File review loop ────────────────────────────────────────────────────────


def test_file_review_loop_with_send_back_and_resubmit(admin, staff, reviewer, artifact):
    _, cfile = _file_under_review(admin, staff, reviewer, artifact)

    with pytest.raises(ValidationFailedError):
        checklist_service.send_back_file(cfile["id"], reviewer, remarks="  ")
    assert checklist_service.get_file(cfile["id"])["status"] == "under_review"

    back = checklist_service.send_back_file(cfile["id"], reviewer, remarks="expired stamp")
    assert back["file"]["status"] == "responded"
    assert back["file"]["review_remarks"] == "expired stamp"

    again = checklist_service.resubmit_file(cfile["id"], artifact("certificate-v2.pdf"), staff,
                                            comment="new stamp")
    assert again["file"]["status"] == "resubmitted"
    assert again["file"]["version"] == 2
    assert again["file"]["review_remarks"] is None
    assert again["file"]["latest"]["original_name"] == "certificate-v2.pdf"

    submitted = checklist_service.submit_file(cfile["id"], staff)
    assert submitted["side_effects"] == ["file_awaiting_review"]
    checklist_service.start_file_review(cfile["id"], reviewer)

    with pytest.raises(StaleSubmissionError) as exc:
        checklist_service.verify_file(cfile["id"], reviewer, version=1)
    assert exc.value.details["latest_version"] == 2

    done = checklist_service.verify_file(cfile["id"], reviewer, version=2)
    assert done["file"]["status"] == "verified"
    assert done["file"]["verified_by"] == "reviewer-1"

    history = checklist_service.get_file_history(cfile["id"])
    assert [(v["version"], v["is_latest"]) for v in history] == [(2, True), (1, False)]
    assert history[0]["comment"] == "new stamp"


def test_file_transitions_follow_the_table(admin, staff, reviewer, artifact):
    checklist, codes = _make_checklist(admin)
    cfile = checklist_service.upload_file(checklist["id"], codes["certificate"], artifact(), staff)["file"]

    with pytest.raises(InvalidStateError):
        checklist_service.verify_file(cfile["id"], reviewer)
    with pytest.raises(InvalidStateError):
        checklist_service.resubmit_file(cfile["id"], artifact("v2.pdf"), staff)
    with pytest.raises(ForbiddenError):
        checklist_service.start_file_review(cfile["id"], staff)


def test_resubmit_requires_artifact(admin, staff, reviewer, artifact):
    _, cfile = _file_under_review(admin, staff, reviewer, artifact)
    checklist_service.send_back_file(cfile["id"], reviewer, remarks="blurry")
    with pytest.raises(ValidationFailedError):
        checklist_service.resubmit_file(cfile["id"], None, staff)
    with pytest.raises(ValidationFailedError):
        checklist_service.resubmit_file(cfile["id"], {"file_path": "x"}, staff)
    assert checklist_service.get_file(cfile["id"])["status"] == "responded"


def test_locked_file_rejects_transitions_until_unlocked(admin, staff, artifact):
    checklist, codes = _make_checklist(admin)
    cfile = checklist_service.upload_file(checklist["id"], codes["certificate"], artifact(), staff)["file"]
    lock_service.manual_lock("checklist_file", cfile["id"], admin)

    with pytest.raises(InvalidStateError) as exc:
        checklist_service.submit_file(cfile["id"], staff)
    assert exc.value.details["is_locked"] is True

    req = lock_service.request_unlock("checklist_file", cfile["id"], staff, reason="typo in upload")
    lock_service.review_unlock_request(req["unlock_request"]["id"], "approve", admin)

    assert checklist_service.submit_file(cfile["id"], staff)["file"]["status"] == "submitted"


def test_unknown_file(staff):
    with pytest.raises(NotFoundError):
        checklist_service.submit_file(404, staff)
