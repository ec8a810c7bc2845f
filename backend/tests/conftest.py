from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so `import marketplace.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

# Settings are read at import time; select the in-process store before that.
os.environ["STORE_BACKEND"] = "memory"
os.environ["APP_ENV"] = "test"
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")


@pytest.fixture(autouse=True)
def fresh_store():
    from marketplace.db.store import get_store

    get_store.cache_clear()
    yield
    get_store.cache_clear()


def _actor(sub: str, role: str):
    from marketplace.auth.identity import Actor

    return Actor(sub=sub, role=role, email=f"{sub}@example.org")


@pytest.fixture
def moderator():
    return _actor("user_moderator", "moderator")


@pytest.fixture
def make_charity():
    """Create a charity user + profile; approved unless told otherwise."""
    from marketplace.modules.profiles import profile_service
    from marketplace.repositories import charities_repo

    def _make(sub: str = "user_charity", *, approved: bool = True, name: str = "Helping Hands"):
        actor = _actor(sub, "charity")
        ch = profile_service.upsert_charity_profile(actor=actor, fields={"organizationName": name, "city": "Austin"})
        if approved:
            ch = charities_repo.update_charity(ch["id"], {"verificationStatus": "approved"})
        return actor, ch

    return _make


@pytest.fixture
def make_volunteer():
    from marketplace.modules.profiles import profile_service
    from marketplace.repositories import volunteers_repo

    def _make(sub: str = "user_volunteer", *, approved: bool = True, **fields):
        actor = _actor(sub, "volunteer")
        profile = {"firstName": sub, "lastName": "Tester", **fields}
        vol = profile_service.upsert_volunteer_profile(actor=actor, fields=profile)
        if approved:
            vol = volunteers_repo.update_volunteer(vol["id"], {"approvalStatus": "approved"})
        return actor, vol

    return _make


@pytest.fixture
def make_opportunity():
    from marketplace.modules.opportunities import opportunity_service

    def _make(charity_actor, *, publish: bool = True, **fields):
        body = {"title": "Food bank shift", "category": "Hunger Relief", "numberOfVolunteers": 2, **fields}
        return opportunity_service.create_opportunity(actor=charity_actor, fields=body, publish=publish)

    return _make
