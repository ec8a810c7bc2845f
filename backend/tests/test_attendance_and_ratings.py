from __future__ import annotations

import pytest

from marketplace.errors import Forbidden, InvalidTransition, NotFound, ValidationFailed
from marketplace.modules.applications import application_service
from marketplace.modules.attendance import attendance_service as svc
from marketplace.modules.attendance import ratings
from marketplace.modules.opportunities import opportunity_service
from marketplace.repositories import applications_repo, volunteers_repo


@pytest.fixture
def confirmed(make_charity, make_volunteer, make_opportunity):
    charity, ch = make_charity()
    vol_actor, vol = make_volunteer()
    opp = make_opportunity(charity)
    app = application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])
    application_service.approve_application(actor=charity, application_id=app["id"])
    application_service.confirm_application(actor=vol_actor, application_id=app["id"], committed_hours=4)
    return charity, ch, vol_actor, vol, opp, app


def test_record_attendance_updates_cached_totals(confirmed):
    charity, _, _, vol, opp, app = confirmed

    rec = svc.record_attendance(
        actor=charity,
        opportunity_id=opp["id"],
        volunteer_id=vol["id"],
        status="present",
        hours_worked=3.5,
        charity_rating=4,
        fields={"notes": "great", "recordedBy": "someone else"},
    )
    assert rec["status"] == "present"
    assert rec["hoursWorked"] == 3.5
    assert rec["notes"] == "great"
    assert rec["recordedBy"] == charity.sub

    v = volunteers_repo.get_volunteer(vol["id"])
    assert v["totalHoursVolunteered"] == 3.5
    assert v["totalOpportunitiesCompleted"] == 1
    assert v["rating"] == 4.0
    assert applications_repo.get_application(app["id"])["hoursWorked"] == 3.5


def test_re_recording_applies_only_the_delta(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=5)
    svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="late", hours_worked=2)

    v = volunteers_repo.get_volunteer(vol["id"])
    assert v["totalHoursVolunteered"] == 2
    assert v["totalOpportunitiesCompleted"] == 1

    svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="absent", hours_worked=0)
    v = volunteers_repo.get_volunteer(vol["id"])
    assert v["totalHoursVolunteered"] == 0
    assert v["totalOpportunitiesCompleted"] == 0
    assert len(svc.list_for_opportunity(actor=charity, opportunity_id=opp["id"])) == 1


def test_re_recording_without_a_rating_keeps_the_existing_one(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    svc.record_attendance(
        actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=3, charity_rating=5
    )
    rec = svc.record_attendance(
        actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=4
    )
    assert rec["charityRating"] == 5
    assert rec["hoursWorked"] == 4
    assert volunteers_repo.get_volunteer(vol["id"])["rating"] == 5.0
    assert ratings.volunteer_rating_stats(vol["id"])["totalRatings"] == 1


def test_record_requires_confirmed_application(make_charity, make_volunteer, make_opportunity):
    charity, _ = make_charity()
    vol_actor, vol = make_volunteer()
    opp = make_opportunity(charity)
    application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])

    with pytest.raises(ValidationFailed) as ei:
        svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present")
    assert ei.value.code == "not_confirmed"


def test_record_validates_input(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    bad = [
        {"status": "sleeping"},
        {"status": "present", "hours_worked": 25},
        {"status": "present", "hours_worked": -1},
        {"status": "present", "charity_rating": 6},
        {"status": "present", "charity_rating": "good"},
    ]
    for kw in bad:
        with pytest.raises(ValidationFailed):
            svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], **kw)


def test_cancelled_opportunity_blocks_recording(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    opportunity_service.close_opportunity(actor=charity, opportunity_id=opp["id"], status="cancelled")
    with pytest.raises(InvalidTransition) as ei:
        svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present")
    assert ei.value.code == "opportunity_cancelled"


def test_completed_opportunity_still_accepts_attendance(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    opportunity_service.close_opportunity(actor=charity, opportunity_id=opp["id"], status="completed")
    rec = svc.record_attendance(
        actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=1
    )
    assert rec["hoursWorked"] == 1


def test_other_charity_cannot_record(confirmed, make_charity):
    _, _, _, vol, opp, _ = confirmed
    other, _ = make_charity("user_other", name="Other")
    with pytest.raises(Forbidden):
        svc.record_attendance(actor=other, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present")


def test_delete_reverts_totals(confirmed):
    charity, _, _, vol, opp, app = confirmed
    rec = svc.record_attendance(
        actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=6, charity_rating=5
    )

    out = svc.delete_attendance(actor=charity, attendance_id=rec["id"])
    assert out["id"] == rec["id"]
    assert out["hoursReverted"] == 6

    v = volunteers_repo.get_volunteer(vol["id"])
    assert v["totalHoursVolunteered"] == 0
    assert v["totalOpportunitiesCompleted"] == 0
    assert v["rating"] is None
    assert applications_repo.get_application(app["id"])["hoursWorked"] == 0

    with pytest.raises(NotFound):
        svc.delete_attendance(actor=charity, attendance_id=rec["id"])


def test_volunteer_feedback_feeds_charity_rating(confirmed, make_volunteer):
    charity, ch, vol_actor, vol, opp, _ = confirmed
    rec = svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=2)

    out = svc.submit_volunteer_feedback(actor=vol_actor, attendance_id=rec["id"], feedback="Well organised", rating=5)
    assert out["volunteerRating"] == 5

    stats = ratings.charity_rating_stats(ch["id"])
    assert stats["averageRating"] == 5.0
    assert stats["totalRatings"] == 1
    assert stats["ratings"][0]["feedback"] == "Well organised"

    stranger, _ = make_volunteer("user_stranger")
    with pytest.raises(Forbidden):
        svc.submit_volunteer_feedback(actor=stranger, attendance_id=rec["id"], feedback="x", rating=1)


def test_volunteer_rating_stats(confirmed):
    charity, _, _, vol, opp, _ = confirmed
    assert ratings.volunteer_rating_stats(vol["id"])["averageRating"] is None
    svc.record_attendance(
        actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", charity_rating=3
    )
    stats = ratings.volunteer_rating_stats(vol["id"])
    assert stats == {
        "volunteerId": vol["id"],
        "averageRating": 3.0,
        "totalRatings": 1,
        "ratings": [stats["ratings"][0]],
    }
    with pytest.raises(NotFound):
        ratings.volunteer_rating_stats("vol_missing")
    with pytest.raises(NotFound):
        ratings.charity_rating_stats("ch_missing")


def test_history_and_confirmed_roster(confirmed):
    charity, _, vol_actor, vol, opp, _ = confirmed
    roster = svc.list_confirmed_volunteers(actor=charity, opportunity_id=opp["id"])
    assert [r["volunteer"]["id"] for r in roster] == [vol["id"]]
    assert roster[0]["attendance"] is None

    svc.record_attendance(actor=charity, opportunity_id=opp["id"], volunteer_id=vol["id"], status="present", hours_worked=4)
    history = svc.my_history(actor=vol_actor)
    assert history["pagination"]["total"] == 1
    assert history["data"][0]["opportunity"]["id"] == opp["id"]
    assert history["summary"]["totalHoursVolunteered"] == 4
    assert svc.my_history(actor=vol_actor, status="absent")["data"] == []
