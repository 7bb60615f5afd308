"""
Tests for the Flask REST API, using the test client and in-memory SQLite.
"""

import pytest

from rally_access.api.app import create_app
from rally_access.api.auth import sessions, cleanup_expired_sessions, decode_token
from rally_access.database import fetch_kid


# ── Helpers ──────────────────────────────────────────────────────────

@pytest.fixture
def client(engine):
    sessions.clear()
    app = create_app(engine)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
    sessions.clear()


def login(client, api_key):
    resp = client.post("/api/auth/login", json={"api_key": api_key})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


# ── Tests: health / auth ─────────────────────────────────────────────

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"] is True


def test_login_requires_json(client):
    resp = client.post("/api/auth/login", data="api_key=x")
    assert resp.status_code == 400


def test_login_requires_api_key(client):
    resp = client.post("/api/auth/login", json={})
    assert resp.status_code == 400


def test_login_invalid_key(client):
    resp = client.post("/api/auth/login", json={"api_key": "nope"})
    assert resp.status_code == 401
    assert "Invalid key" in resp.get_json()["error"]


def test_login_parent_returns_capabilities(client):
    resp = client.post("/api/auth/login", json={"api_key": "key-parent"})
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["user"]["role"] == "parent"
    assert data["capabilities"] == {
        "can_create": False, "can_edit": False, "can_delete": False, "can_view": True,
    }
    assert decode_token(data["token"])["sub"] == "user-123"
    assert data["token"] in sessions


def test_kids_requires_token(client):
    assert client.get("/api/kids").status_code == 401


def test_invalid_token_rejected(client):
    assert client.get("/api/kids", headers=auth("garbage")).status_code == 401


def test_logout_drops_session(client):
    token = login(client, "key-parent")
    assert client.post("/api/auth/logout", headers=auth(token)).status_code == 200
    assert token not in sessions
    assert client.get("/api/kids", headers=auth(token)).status_code == 401


def test_cleanup_expired_sessions(client):
    from datetime import datetime, timedelta

    token = login(client, "key-parent")
    sessions[token].last_activity = datetime.utcnow() - timedelta(days=3)
    assert cleanup_expired_sessions() == 1
    assert token not in sessions


def test_idle_session_rejected_and_dropped(client):
    from datetime import datetime, timedelta

    token = login(client, "key-parent")
    sessions[token].last_activity = datetime.utcnow() - timedelta(days=3)
    assert client.get("/api/kids", headers=auth(token)).status_code == 401
    assert token not in sessions


def test_token_accepted_from_query_string(client):
    token = login(client, "key-parent")
    assert client.get("/api/kids", query_string={"token": token}).status_code == 200


def test_non_bearer_scheme_rejected(client):
    token = login(client, "key-parent")
    resp = client.get("/api/kids", headers={"Authorization": f"Basic {token}"})
    assert resp.status_code == 401


def test_session_listing_endpoint_absent(client):
    assert client.get("/api/sessions").status_code == 404


def test_profile(client):
    token = login(client, "key-instructor")
    data = client.get("/api/user/profile", headers=auth(token)).get_json()
    assert data["user"]["instructor_id"] == "instr-1"
    assert data["capabilities"]["can_create"] is True


# ── Tests: kids ──────────────────────────────────────────────────────

def test_parent_lists_only_own_kids_redacted(client):
    token = login(client, "key-parent")
    data = client.get("/api/kids", headers=auth(token)).get_json()
    assert data["count"] == 1
    kid = data["kids"][0]
    assert kid["id"] == "kid-1"
    assert "medicalNotes" not in kid
    assert kid["comments"] == {"parent": "loves red"}


def test_host_lists_all_kids_without_emails(client):
    token = login(client, "key-host")
    kids = client.get("/api/kids", headers=auth(token)).get_json()["kids"]
    assert {k["id"] for k in kids} == {"kid-1", "kid-2"}
    assert all("email" not in k.get("parentInfo", {}) for k in kids)


def test_admin_gets_full_records(client):
    token = login(client, "key-admin")
    kid = client.get("/api/kids/kid-2", headers=auth(token)).get_json()["kid"]
    assert kid["medicalNotes"] == "none"


def test_unrecognized_role_cannot_list(client):
    token = login(client, "key-weird")
    resp = client.get("/api/kids", headers=auth(token))
    assert resp.status_code == 403


def test_get_kid_not_found_vs_denied(client):
    token = login(client, "key-parent")
    assert client.get("/api/kids/missing", headers=auth(token)).status_code == 404
    assert client.get("/api/kids/kid-2", headers=auth(token)).status_code == 403
    assert client.get("/api/kids/kid-1", headers=auth(token)).status_code == 200


def test_kid_field_permissions(client):
    token = login(client, "key-parent")
    resp = client.get(
        "/api/kids/kid-1/permissions",
        headers=auth(token),
        query_string={"fields": "personalInfo.photo,comments.organization"},
    )
    fields = resp.get_json()["fields"]
    assert fields["personalInfo.photo"] == {"view": True, "edit": True}
    assert fields["comments.organization"] == {"view": False, "edit": False}


def test_kid_field_permissions_default_to_record_leaves(client):
    token = login(client, "key-instructor")
    fields = client.get("/api/kids/kid-1/permissions", headers=auth(token)).get_json()["fields"]
    assert fields["medicalNotes"] == {"view": True, "edit": True}
    assert fields["personalInfo.firstName"] == {"view": True, "edit": False}


# ── Tests: edits ─────────────────────────────────────────────────────

def test_parent_updates_own_comment(client, engine):
    token = login(client, "key-parent")
    resp = client.patch("/api/kids/kid-1", headers=auth(token),
                        json={"updates": {"comments.parent": "prefers blue"}})
    assert resp.status_code == 200
    assert resp.get_json()["kid"]["comments"]["parent"] == "prefers blue"
    assert fetch_kid(engine, "kid-1")["comments"]["parent"] == "prefers blue"


def test_parent_edit_rejected_writes_nothing(client, engine):
    token = login(client, "key-parent")
    resp = client.patch("/api/kids/kid-1", headers=auth(token),
                        json={"updates": {"comments.parent": "x", "comments.organization": "y"}})
    assert resp.status_code == 403
    assert resp.get_json()["rejected_fields"] == ["comments.organization"]
    stored = fetch_kid(engine, "kid-1")
    assert stored["comments"]["parent"] == "loves red"
    assert stored["comments"]["organization"] == "needs ramp"


def test_host_updates_organization_comment(client, engine):
    token = login(client, "key-host")
    resp = client.patch("/api/kids/kid-2", headers=auth(token),
                        json={"updates": {"comments.organization": "ramp ready"}})
    assert resp.status_code == 200
    assert fetch_kid(engine, "kid-2")["comments"]["organization"] == "ramp ready"


def test_patch_validation(client):
    token = login(client, "key-admin")
    assert client.patch("/api/kids/kid-1", headers=auth(token), json={"updates": {}}).status_code == 400
    assert client.patch("/api/kids/kid-1", headers=auth(token), json={"updates": "x"}).status_code == 400
    assert client.patch("/api/kids/ghost", headers=auth(token),
                        json={"updates": {"notes": "n"}}).status_code == 404


# ── Tests: create / delete ───────────────────────────────────────────

NEW_KID = {
    "participantNumber": "010",
    "instructorId": "instr-1",
    "personalInfo": {"firstName": "Tal", "lastName": "Bar"},
    "medicalNotes": "none",
}


def test_instructor_creates_kid(client, engine):
    token = login(client, "key-instructor")
    resp = client.post("/api/kids", headers=auth(token), json={"kid": dict(NEW_KID, id="kid-3")})
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["id"] == "kid-3"
    assert data["kid"]["medicalNotes"] == "none"
    assert fetch_kid(engine, "kid-3")["personalInfo"]["firstName"] == "Tal"


def test_create_generates_id(client, engine):
    token = login(client, "key-admin")
    resp = client.post("/api/kids", headers=auth(token), json={"kid": NEW_KID})
    assert resp.status_code == 201
    assert fetch_kid(engine, resp.get_json()["id"]) is not None


@pytest.mark.parametrize("api_key", ["key-parent", "key-host", "key-weird"])
def test_create_denied_without_capability(client, engine, api_key):
    token = login(client, api_key)
    resp = client.post("/api/kids", headers=auth(token), json={"kid": dict(NEW_KID, id="kid-3")})
    assert resp.status_code == 403
    assert fetch_kid(engine, "kid-3") is None


def test_create_validation(client):
    token = login(client, "key-admin")
    assert client.post("/api/kids", headers=auth(token), json={"kid": {}}).status_code == 400
    assert client.post("/api/kids", headers=auth(token), json={"kid": "x"}).status_code == 400
    resp = client.post("/api/kids", headers=auth(token), json={"kid": {"id": "kid-1", "notes": "dup"}})
    assert resp.status_code == 409


@pytest.mark.parametrize("api_key", ["key-instructor", "key-parent", "key-host"])
def test_delete_denied_without_capability(client, engine, api_key):
    token = login(client, api_key)
    assert client.delete("/api/kids/kid-1", headers=auth(token)).status_code == 403
    assert fetch_kid(engine, "kid-1") is not None


def test_admin_deletes_kid(client, engine):
    token = login(client, "key-admin")
    assert client.delete("/api/kids/kid-2", headers=auth(token)).status_code == 200
    assert fetch_kid(engine, "kid-2") is None
    assert client.delete("/api/kids/kid-2", headers=auth(token)).status_code == 404
