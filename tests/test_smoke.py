from conftest import ADMIN_ID, CONTROLLER_ID, MEMBER_ID, as_user

from app.musaib.db import session_scope
from app.musaib.models import Profile


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200


def test_missing_identity_is_unauthorized(client):
    r = client.get("/demands/")
    assert r.status_code == 401
    assert r.json["error"] == "unauthorized"


def test_unknown_or_malformed_identity_is_unauthorized(client):
    assert client.get("/demands/", headers=as_user(999)).status_code == 401
    assert client.get("/demands/", headers={"X-Authenticated-User": "abc"}).status_code == 401


def test_me_reports_role_and_permissions(client):
    r = client.get("/me", headers=as_user(CONTROLLER_ID))
    assert r.status_code == 200
    assert r.json["role"] == "controleur"
    assert "demands.review" in r.json["permissions"]
    assert "demands.validate" not in r.json["permissions"]


def test_wrong_role_is_forbidden(client):
    # Controllers do not register family members; members do not manage profiles.
    r = client.post("/family/", json={"first_name": "A", "last_name": "B", "relation": "enfant"}, headers=as_user(CONTROLLER_ID))
    assert r.status_code == 403
    assert r.json["missing_permission"] == "family.edit"

    r = client.get("/admin/profiles", headers=as_user(MEMBER_ID))
    assert r.status_code == 403

    r = client.get("/admin/profiles", headers=as_user(ADMIN_ID))
    assert r.status_code == 200


def test_suspended_profile_loses_access(client):
    app = client.application
    with session_scope(app) as s:
        s.get(Profile, MEMBER_ID).is_active = False

    r = client.get("/demands/", headers=as_user(MEMBER_ID))
    assert r.status_code == 401


def test_identity_header_name_is_configurable(tmp_path, monkeypatch):
    from app.musaib import create_app
    from app.musaib.models import Base
    from app.musaib.seed import seed_roles

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'custom.db'}")
    monkeypatch.setenv("AUTH_USER_HEADER", "X-Forwarded-User")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        seed_roles(s)
        s.add(Profile(id=7, email="m@example.com", full_name="M", role="membre"))

    c = app.test_client()
    assert c.get("/demands/", headers={"X-Forwarded-User": "7"}).status_code == 200
    assert c.get("/demands/", headers=as_user(7)).status_code == 401
