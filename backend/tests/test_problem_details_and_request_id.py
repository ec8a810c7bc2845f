from __future__ import annotations

from fastapi.testclient import TestClient

from marketplace.main import create_app


def test_request_id_is_generated_and_returned():
    app = create_app()
    client = TestClient(app)

    r = client.get("/")
    assert r.status_code == 200
    assert "X-Request-Id" in r.headers
    assert r.headers["X-Request-Id"]


def test_request_id_is_propagated_from_client():
    app = create_app()
    client = TestClient(app)

    r = client.get("/api/health", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.headers.get("X-Request-Id") == "abc-123"


def test_validation_errors_are_problem_json(monkeypatch):
    import marketplace.middleware.auth as auth_mw
    from marketplace.auth.identity import Actor

    monkeypatch.setattr(auth_mw, "verify_bearer_token", lambda _tok: Actor(sub="user_v", role="volunteer"))
    app = create_app()
    client = TestClient(app)

    # Missing required body fields => pydantic validation error
    r = client.post("/api/applications", json={}, headers={"Authorization": "Bearer x"})
    assert r.status_code == 422
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["title"] == "Validation Failed"
    assert body["status"] == 422
    assert "errors" in body and isinstance(body["errors"], list)
    assert body["errors"][0]["path"] == "opportunityId"
    assert body.get("requestId")


def test_404_is_problem_json():
    app = create_app()
    client = TestClient(app)

    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["status"] == 404
    assert body.get("requestId")


def test_auth_denied_is_problem_json():
    app = create_app()
    client = TestClient(app)

    r = client.get("/api/me")
    assert r.status_code == 401
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["status"] == 401
    assert body["title"] == "Unauthorized"
    assert body.get("requestId")


def test_invalid_token_is_rejected():
    app = create_app()
    client = TestClient(app)

    r = client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


def test_signed_token_resolves_the_actor():
    from jose import jwt

    token = jwt.encode({"sub": "user_jwt", "role": "Volunteers", "email": "v@example.org"}, "test-secret", algorithm="HS256")
    app = create_app()
    client = TestClient(app)

    r = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["id"] == "user_jwt"
    assert body["user"]["role"] == "volunteer"


def test_domain_errors_carry_a_stable_code(monkeypatch):
    import marketplace.middleware.auth as auth_mw
    from marketplace.auth.identity import Actor

    monkeypatch.setattr(auth_mw, "verify_bearer_token", lambda _tok: Actor(sub="user_v", role="volunteer"))
    app = create_app()
    client = TestClient(app)

    r = client.get("/api/applications/app_missing", headers={"Authorization": "Bearer x"})
    assert r.status_code == 404
    body = r.json()
    assert body["extensions"]["code"] == "not_found"
    assert body["extensions"]["applicationId"] == "app_missing"
