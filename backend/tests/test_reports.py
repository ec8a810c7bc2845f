from __future__ import annotations

import pytest

from marketplace.errors import DuplicateEntity, Forbidden, InvalidTransition, NotFound, ValidationFailed
from marketplace.modules.moderation import report_service as svc


def test_report_lifecycle(make_charity, make_volunteer, make_opportunity, moderator):
    charity, _ = make_charity()
    vol_actor, _ = make_volunteer()
    opp = make_opportunity(charity)

    report = svc.create_report(
        actor=vol_actor, entity_type="opportunity", entity_id=opp["id"], reason="spam", description="Looks fake"
    )
    assert report["status"] == "pending"
    assert report["reporterId"] == vol_actor.sub

    detail = svc.get_report(actor=vol_actor, report_id=report["id"])
    assert detail["entityDetails"]["name"] == "Food bank shift"

    reviewing = svc.update_report_status(actor=moderator, report_id=report["id"], status="under_review")
    assert reviewing["status"] == "under_review"
    assert "reviewedBy" not in reviewing or reviewing["reviewedBy"] is None

    resolved = svc.update_report_status(
        actor=moderator, report_id=report["id"], status="resolved", resolution="Removed", action_taken="suspended"
    )
    assert resolved["status"] == "resolved"
    assert resolved["reviewedBy"] == moderator.sub
    assert resolved["actionTaken"] == "suspended"

    with pytest.raises(InvalidTransition):
        svc.update_report_status(actor=moderator, report_id=report["id"], status="pending")
    assert svc.update_report_status(actor=moderator, report_id=report["id"], status="dismissed")["status"] == "dismissed"


def test_duplicate_open_report_is_rejected(make_charity, make_volunteer, moderator):
    charity, ch = make_charity()
    vol_actor, _ = make_volunteer()

    first = svc.create_report(actor=vol_actor, entity_type="charity", entity_id=ch["id"], reason="harassment")
    with pytest.raises(DuplicateEntity) as ei:
        svc.create_report(actor=vol_actor, entity_type="charity", entity_id=ch["id"], reason="spam")
    assert ei.value.code == "duplicate_report"

    # Once closed, the same reporter may report again.
    svc.update_report_status(actor=moderator, report_id=first["id"], status="dismissed")
    again = svc.create_report(actor=vol_actor, entity_type="charity", entity_id=ch["id"], reason="spam")
    assert again["id"] != first["id"]


def test_self_report_and_missing_entity(make_volunteer):
    vol_actor, _ = make_volunteer()
    with pytest.raises(ValidationFailed) as ei:
        svc.create_report(actor=vol_actor, entity_type="user", entity_id=vol_actor.sub, reason="other")
    assert ei.value.code == "self_report"

    with pytest.raises(NotFound):
        svc.create_report(actor=vol_actor, entity_type="opportunity", entity_id="opp_missing", reason="spam")
    with pytest.raises(ValidationFailed):
        svc.create_report(actor=vol_actor, entity_type="planet", entity_id="x", reason="spam")
    with pytest.raises(ValidationFailed):
        svc.create_report(actor=vol_actor, entity_type="comment", entity_id="c1", reason="rude")

    # Comments are not stored here, so they are accepted without a lookup.
    assert svc.create_report(actor=vol_actor, entity_type="comment", entity_id="c1", reason="spam")["status"] == "pending"


def test_only_reporter_or_moderator_reads(make_charity, make_volunteer, moderator):
    _, ch = make_charity()
    vol_actor, _ = make_volunteer()
    other, _ = make_volunteer("user_other")
    report = svc.create_report(actor=vol_actor, entity_type="charity", entity_id=ch["id"], reason="spam")

    assert svc.get_report(actor=moderator, report_id=report["id"])["id"] == report["id"]
    with pytest.raises(Forbidden):
        svc.get_report(actor=other, report_id=report["id"])
    with pytest.raises(Forbidden):
        svc.list_reports(actor=vol_actor)
    with pytest.raises(Forbidden):
        svc.update_report_status(actor=vol_actor, report_id=report["id"], status="resolved")

    assert svc.list_my_reports(actor=vol_actor)["pagination"]["total"] == 1
    assert svc.list_my_reports(actor=other)["data"] == []


def test_stats_and_filters(make_charity, make_volunteer, make_opportunity, moderator):
    charity, ch = make_charity()
    opp = make_opportunity(charity)
    v1, _ = make_volunteer("user_v1")
    v2, _ = make_volunteer("user_v2")

    r1 = svc.create_report(actor=v1, entity_type="opportunity", entity_id=opp["id"], reason="spam")
    svc.create_report(actor=v2, entity_type="opportunity", entity_id=opp["id"], reason="false_information")
    svc.create_report(actor=v1, entity_type="charity", entity_id=ch["id"], reason="spam")
    svc.update_report_status(actor=moderator, report_id=r1["id"], status="resolved")

    stats = svc.report_stats(actor=moderator)
    assert stats["totalReports"] == 3
    assert stats["pendingReports"] == 2
    assert stats["resolvedReports"] == 1
    assert stats["dismissedReports"] == 0
    assert stats["reportsByEntityType"] == {"opportunity": 2, "charity": 1}
    assert stats["reportsByReason"] == {"spam": 2, "false_information": 1}

    assert svc.list_reports(actor=moderator, reason="spam")["pagination"]["total"] == 2
    assert svc.list_reports(actor=moderator, status="pending", entity_type="opportunity")["pagination"]["total"] == 1
    assert len(svc.reports_for_entity(actor=moderator, entity_type="opportunity", entity_id=opp["id"])) == 2


def test_update_and_delete_validation(make_charity, make_volunteer, moderator):
    _, ch = make_charity()
    vol_actor, _ = make_volunteer()
    report = svc.create_report(actor=vol_actor, entity_type="charity", entity_id=ch["id"], reason="spam")

    with pytest.raises(ValidationFailed):
        svc.update_report_status(actor=moderator, report_id=report["id"])
    with pytest.raises(NotFound):
        svc.update_report_status(actor=moderator, report_id="rpt_missing", status="resolved")

    svc.delete_report(actor=moderator, report_id=report["id"])
    with pytest.raises(NotFound):
        svc.delete_report(actor=moderator, report_id=report["id"])
