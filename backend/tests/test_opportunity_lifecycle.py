from __future__ import annotations

import pytest

from marketplace.errors import Forbidden, InvalidTransition, NotFound, ValidationFailed
from marketplace.modules.applications import application_service
from marketplace.modules.opportunities import opportunity_service as svc
from marketplace.repositories import applications_repo, opportunities_repo


def test_suspend_and_resume_restores_previous_status(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    opp = make_opportunity(charity)

    suspended = svc.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="policy violation")
    assert suspended["status"] == "suspended"
    assert suspended["previousStatus"] == "published"
    assert suspended["suspensionReason"] == "policy violation"

    resumed = svc.resume_opportunity(actor=moderator, opportunity_id=opp["id"], notes="fixed")
    assert resumed["status"] == "published"
    assert "previousStatus" not in resumed
    assert "suspendedAt" not in resumed
    assert resumed["resumedBy"] == moderator.sub


def test_resume_without_recorded_status_falls_back_to_published(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    opp = make_opportunity(charity)
    opportunities_repo.update_opportunity(opp["id"], {"status": "suspended"})

    assert svc.resume_opportunity(actor=moderator, opportunity_id=opp["id"])["status"] == "published"


def test_suspend_guards(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    opp = make_opportunity(charity)

    with pytest.raises(ValidationFailed):
        svc.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="")
    with pytest.raises(Forbidden):
        svc.suspend_opportunity(actor=charity, opportunity_id=opp["id"], reason="nope")

    svc.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="first")
    with pytest.raises(InvalidTransition):
        svc.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="second")

    with pytest.raises(InvalidTransition):
        svc.resume_opportunity(actor=moderator, opportunity_id=make_opportunity(charity, title="x")["id"])


def test_publish_only_from_draft(make_charity, make_opportunity):
    charity, _ = make_charity()
    draft = make_opportunity(charity, publish=False)
    assert draft["status"] == "draft"

    assert svc.publish_opportunity(actor=charity, opportunity_id=draft["id"])["status"] == "published"
    with pytest.raises(InvalidTransition):
        svc.publish_opportunity(actor=charity, opportunity_id=draft["id"])


def test_close_is_terminal(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    opp = make_opportunity(charity)

    closed = svc.close_opportunity(actor=charity, opportunity_id=opp["id"], status="completed", notes="done")
    assert closed["status"] == "completed"
    assert closed["closureNotes"] == "done"

    with pytest.raises(InvalidTransition):
        svc.close_opportunity(actor=charity, opportunity_id=opp["id"], status="cancelled")
    with pytest.raises(InvalidTransition):
        svc.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="late")
    with pytest.raises(InvalidTransition) as ei:
        svc.update_opportunity(actor=charity, opportunity_id=opp["id"], fields={"title": "new"})
    assert ei.value.code == "opportunity_closed"


def test_close_rejects_non_closing_targets(make_charity, make_opportunity):
    charity, _ = make_charity()
    opp = make_opportunity(charity)
    with pytest.raises(InvalidTransition):
        svc.close_opportunity(actor=charity, opportunity_id=opp["id"], status="published")


def test_close_notifies_committed_volunteers(make_charity, make_volunteer, make_opportunity):
    from marketplace.modules.notifications import notifier

    charity, _ = make_charity()
    vol_actor, _ = make_volunteer()
    opp = make_opportunity(charity)
    app = application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])
    application_service.approve_application(actor=charity, application_id=app["id"])

    svc.close_opportunity(actor=charity, opportunity_id=opp["id"], status="cancelled", notes="weather")
    types = [n["type"] for n in notifier.list_notifications(user_id=vol_actor.sub)["notifications"]]
    assert "opportunity_closed" in types


def test_create_validates_fields(make_charity):
    charity, _ = make_charity()
    with pytest.raises(ValidationFailed):
        svc.create_opportunity(actor=charity, fields={"title": " "})
    with pytest.raises(ValidationFailed):
        svc.create_opportunity(actor=charity, fields={"title": "x", "numberOfVolunteers": 0})
    with pytest.raises(ValidationFailed):
        svc.create_opportunity(actor=charity, fields={"title": "x", "locationType": "moon"})
    with pytest.raises(ValidationFailed):
        svc.create_opportunity(
            actor=charity, fields={"title": "x", "startDate": "2030-06-02", "endDate": "2030-06-01"}
        )

    opp = svc.create_opportunity(actor=charity, fields={"title": "Beach cleanup", "ignored": "value"})
    assert opp["numberOfVolunteers"] == 1
    assert opp["locationType"] == "in-person"
    assert opp["volunteersConfirmed"] == 0
    assert "ignored" not in opp


def test_unapproved_charity_cannot_create(make_charity):
    charity, _ = make_charity(approved=False)
    with pytest.raises(Forbidden):
        svc.create_opportunity(actor=charity, fields={"title": "x"})


def test_capacity_cannot_shrink_below_confirmed(make_charity, make_volunteer, make_opportunity):
    charity, _ = make_charity()
    v1, _ = make_volunteer("user_v1")
    v2, _ = make_volunteer("user_v2")
    opp = make_opportunity(charity, numberOfVolunteers=3)
    for actor in (v1, v2):
        app = application_service.submit_application(actor=actor, opportunity_id=opp["id"])
        application_service.approve_application(actor=charity, application_id=app["id"])
        application_service.confirm_application(actor=actor, application_id=app["id"], committed_hours=2)

    with pytest.raises(ValidationFailed):
        svc.update_opportunity(actor=charity, opportunity_id=opp["id"], fields={"numberOfVolunteers": 1})

    out = svc.update_opportunity(actor=charity, opportunity_id=opp["id"], fields={"numberOfVolunteers": 2})
    assert out["numberOfVolunteers"] == 2
    assert out["volunteersConfirmed"] == 2


def test_other_charity_cannot_update(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    other, _ = make_charity("user_other", name="Other")
    opp = make_opportunity(charity)

    with pytest.raises(Forbidden):
        svc.update_opportunity(actor=other, opportunity_id=opp["id"], fields={"title": "mine now"})
    assert svc.update_opportunity(actor=moderator, opportunity_id=opp["id"], fields={"title": "edited"})["title"] == "edited"


def test_delete_blocked_by_active_applications(make_charity, make_volunteer, make_opportunity, moderator):
    charity, _ = make_charity()
    vol_actor, _ = make_volunteer()
    opp = make_opportunity(charity)
    app = application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])

    with pytest.raises(ValidationFailed):
        svc.delete_opportunity(actor=moderator, opportunity_id=opp["id"], reason="")
    with pytest.raises(InvalidTransition) as ei:
        svc.delete_opportunity(actor=moderator, opportunity_id=opp["id"], reason="spam")
    assert ei.value.code == "has_active_applications"

    application_service.withdraw_application(actor=vol_actor, application_id=app["id"])
    out = svc.delete_opportunity(actor=moderator, opportunity_id=opp["id"], reason="spam")
    assert out == {"id": opp["id"], "applicationsRemoved": 1, "attendanceRemoved": 0}
    assert opportunities_repo.get_opportunity(opp["id"]) is None
    assert applications_repo.list_applications({"opportunityId": opp["id"]}) == []


def test_public_visibility(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    other, _ = make_charity("user_other", name="Other")
    draft = make_opportunity(charity, publish=False)
    private = make_opportunity(charity, title="Private", visibility="private")
    public = make_opportunity(charity, title="Public")

    assert svc.get_opportunity_for(actor=None, opportunity_id=public["id"])["charity"]["organizationName"] == "Helping Hands"
    for hidden in (draft, private):
        with pytest.raises(NotFound):
            svc.get_opportunity_for(actor=None, opportunity_id=hidden["id"])
        with pytest.raises(Forbidden):
            svc.get_opportunity_for(actor=other, opportunity_id=hidden["id"])
        assert svc.get_opportunity_for(actor=charity, opportunity_id=hidden["id"])["id"] == hidden["id"]
        assert svc.get_opportunity_for(actor=moderator, opportunity_id=hidden["id"])["id"] == hidden["id"]


def test_search_filters(make_charity, make_opportunity):
    charity, _ = make_charity()
    make_opportunity(charity, title="Teach kids", category="Education", city="Austin", requiredSkills=["Teaching"])
    make_opportunity(charity, title="Online tutoring", category="Education", locationType="virtual")
    make_opportunity(charity, title="Soup kitchen", city="Dallas", description="Serve meals")
    make_opportunity(charity, title="Hidden draft", category="Education", publish=False)

    def titles(**kw):
        return sorted(o["title"] for o in svc.search_opportunities(**kw)["data"])

    assert titles(category="Education") == ["Online tutoring", "Teach kids"]
    assert titles(location_type="virtual") == ["Online tutoring"]
    assert titles(city="austin") == ["Teach kids"]
    assert titles(skill="teach") == ["Teach kids"]
    assert titles(search="meals") == ["Soup kitchen"]

    page = svc.search_opportunities(page=2, limit=2)
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert len(page["data"]) == 1


def test_moderate_and_list_for_moderator(make_charity, make_opportunity, moderator):
    charity, _ = make_charity()
    opp = make_opportunity(charity)
    make_opportunity(charity, title="Other")

    out = svc.moderate_opportunity(actor=moderator, opportunity_id=opp["id"], moderation_status="approved")
    assert out["moderationStatus"] == "approved"
    with pytest.raises(ValidationFailed):
        svc.moderate_opportunity(actor=moderator, opportunity_id=opp["id"], moderation_status="pending")

    listed = svc.list_for_moderator(actor=moderator, moderation_status="pending")
    assert [o["title"] for o in listed["data"]] == ["Other"]
    with pytest.raises(Forbidden):
        svc.list_for_moderator(actor=charity)


def test_list_my_opportunities(make_charity, make_opportunity):
    charity, _ = make_charity()
    make_opportunity(charity, publish=False)
    make_opportunity(charity, title="Live")
    assert [o["title"] for o in svc.list_my_opportunities(actor=charity, status="published")] == ["Live"]
    assert len(svc.list_my_opportunities(actor=charity)) == 2
