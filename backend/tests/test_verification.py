from __future__ import annotations

import pytest

from marketplace.errors import Forbidden, ValidationFailed
from marketplace.modules.applications import application_service
from marketplace.modules.moderation import verification_service as svc
from marketplace.modules.opportunities import opportunity_service
from marketplace.repositories import users_repo


def test_review_charity_unlocks_publishing(make_charity, moderator):
    charity, ch = make_charity(approved=False)
    with pytest.raises(Forbidden):
        opportunity_service.create_opportunity(actor=charity, fields={"title": "x"})

    assert svc.list_accounts(actor=moderator, kind=svc.CHARITY, status="pending")["pagination"]["total"] == 1
    out = svc.review_charity(actor=moderator, charity_id=ch["id"], status="approved", notes="Registration checked")
    assert out["verificationStatus"] == "approved"
    assert out["reviewedBy"] == moderator.sub

    opp = opportunity_service.create_opportunity(actor=charity, fields={"title": "x"}, publish=True)
    assert opp["status"] == "published"


def test_review_volunteer_with_background_check(make_volunteer, moderator):
    _, vol = make_volunteer(approved=False)
    out = svc.review_volunteer(
        actor=moderator, volunteer_id=vol["id"], status="approved", background_check_status="approved"
    )
    assert out["approvalStatus"] == "approved"
    assert out["backgroundCheckStatus"] == "approved"

    with pytest.raises(ValidationFailed):
        svc.review_volunteer(actor=moderator, volunteer_id=vol["id"], status="pending")
    with pytest.raises(ValidationFailed):
        svc.review_volunteer(actor=moderator, volunteer_id=vol["id"], status="approved", background_check_status="maybe")


def test_only_moderators_review(make_charity, make_volunteer):
    charity, ch = make_charity(approved=False)
    vol_actor, _ = make_volunteer()
    with pytest.raises(Forbidden):
        svc.review_charity(actor=vol_actor, charity_id=ch["id"], status="approved")
    with pytest.raises(Forbidden):
        svc.dashboard(actor=charity)


def test_deactivation_locks_the_account(make_charity, make_volunteer, make_opportunity, moderator):
    charity, _ = make_charity()
    vol_actor, vol = make_volunteer()
    opp = make_opportunity(charity)

    with pytest.raises(ValidationFailed):
        svc.set_account_active(actor=moderator, kind=svc.VOLUNTEER, entity_id=vol["id"], active=False)

    out = svc.set_account_active(
        actor=moderator, kind=svc.VOLUNTEER, entity_id=vol["id"], active=False, reason="abuse"
    )
    assert out["isActive"] is False
    user = users_repo.get_user(vol_actor.sub)
    assert user["isActive"] is False
    assert user["deactivationReason"] == "abuse"

    with pytest.raises(Forbidden) as ei:
        application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])
    assert ei.value.code == "account_deactivated"

    svc.set_account_active(actor=moderator, kind=svc.VOLUNTEER, entity_id=vol["id"], active=True)
    user = users_repo.get_user(vol_actor.sub)
    assert user["isActive"] is True
    assert "deactivationReason" not in user
    application_service.submit_application(actor=vol_actor, opportunity_id=opp["id"])


def test_dashboard_counts(make_charity, make_volunteer, make_opportunity, moderator):
    charity, _ = make_charity()
    make_charity("user_pending_charity", approved=False, name="Pending Org")
    make_volunteer("user_pending_vol", approved=False)
    opp = make_opportunity(charity)
    opportunity_service.suspend_opportunity(actor=moderator, opportunity_id=opp["id"], reason="check")

    stats = svc.dashboard(actor=moderator)
    assert stats["pendingCharities"] == 1
    assert stats["pendingVolunteers"] == 1
    assert stats["suspendedOpportunities"] == 1
    assert stats["flaggedApplications"] == 0
    assert stats["openReports"] == 0
    assert stats["pendingOpportunityModeration"] == 1
