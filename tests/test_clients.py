"""Tests for the Clients module (service + dashboard routes)."""
import json

import pytest
from werkzeug.security import generate_password_hash

from app.genius import create_app
from app.genius.db import session_scope
from app.genius.models import AuditEvent, Base, Permission, Role, User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import (
    create_client,
    delete_client,
    get_client_by_id,
    get_client_by_token,
    regenerate_token,
    set_client_status,
    update_client,
    validate_client_payload,
)
from app.genius.modules.journeys.models import ContentVersion, JourneyPage
from app.genius.rbac import PERMISSIONS


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key, name in PERMISSIONS.items():
            r.permissions.append(Permission(key=key, name=name))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _admin(s):
    return s.query(User).filter(User.email == "admin@example.com").one()


def _login(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)


def _csrf(client):
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _payload(**overrides):
    data = {
        "company": "TechCorp Solutions",
        "contact": "John Smith",
        "email": "John@TechCorp.com",
        "position": "Senior Software Engineer",
        "salary": "$120,000 - $150,000",
        "hypothesis": "Values career growth and remote flexibility.",
    }
    data.update(overrides)
    return data


def test_validate_client_payload_required_fields():
    errs = validate_client_payload({})
    fields = {e.field for e in errs}
    assert {"company", "contact", "email", "position", "hypothesis"} <= fields


def test_validate_client_payload_bad_email_and_logo():
    errs = validate_client_payload(_payload(email="not-an-email", logo="javascript:alert(1)"))
    fields = {e.field for e in errs}
    assert fields == {"email", "logo"}


def test_create_client_seeds_four_pages_with_current_v1(app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s))
        client_id = c.id
        token = c.token

    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        assert c.email == "john@techcorp.com"
        assert c.status == "pending"
        assert c.journey_outcome == "pending"
        assert get_client_by_token(s, token).id == client_id

        pages = s.query(JourneyPage).filter(JourneyPage.client_id == client_id).order_by(JourneyPage.page_order).all()
        assert [p.page_type for p in pages] == ["activation", "agreement", "confirmation", "processing"]
        assert [p.page_order for p in pages] == [1, 2, 3, 4]
        assert all(p.status == "pending" for p in pages)
        for p in pages:
            versions = s.query(ContentVersion).filter(ContentVersion.page_id == p.id).all()
            assert len(versions) == 1
            assert versions[0].version_number == 1
            assert versions[0].is_current is True
            assert versions[0].title == p.title

        ev = s.query(AuditEvent).filter(AuditEvent.action == "client.create").one()
        assert ev.entity_id == str(client_id)


def test_create_client_rejects_duplicate_email(app):
    with session_scope(app) as s:
        create_client(s, _payload(), user=_admin(s))
    with session_scope(app) as s:
        with pytest.raises(ValueError, match="already exists"):
            create_client(s, _payload(email="john@techcorp.com "), user=_admin(s))


def test_create_client_requires_hypothesis(app):
    with session_scope(app) as s:
        with pytest.raises(ValueError, match="hypothesis"):
            create_client(s, _payload(hypothesis="   "), user=_admin(s))
        assert s.query(Client).count() == 0


def test_update_client_requires_reason_and_audits_changes(app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s))
        client_id, token = c.id, c.token

    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        with pytest.raises(ValueError, match="Reason"):
            update_client(s, c, _payload(position="CTO"), user=_admin(s), reason="")

    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        update_client(s, c, _payload(position="CTO"), user=_admin(s), reason="Promoted")

    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        assert c.position == "CTO"
        assert c.token == token
        ev = s.query(AuditEvent).filter(AuditEvent.action == "client.update").one()
        assert ev.reason == "Promoted"
        meta = json.loads(ev.metadata_json)
        assert meta["fields_changed"] == ["position"]
        assert meta["before"]["position"] == "Senior Software Engineer"


def test_set_client_status_stamps_and_clears_activated_at(app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s))
        set_client_status(s, c, "activated", user=_admin(s))
        assert c.activated_at is not None
        set_client_status(s, c, "pending", user=_admin(s))
        assert c.activated_at is None
        with pytest.raises(ValueError):
            set_client_status(s, c, "archived", user=_admin(s))


def test_regenerate_token_invalidates_old_link(app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s), token="G1001")
        client_id = c.id

    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        regenerate_token(s, c, user=_admin(s), reason="Link leaked")
        new_token = c.token

    assert new_token != "G1001"
    with session_scope(app) as s:
        assert get_client_by_token(s, "G1001") is None
        assert get_client_by_token(s, new_token).id == client_id


def test_delete_client_cascades(app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s))
        client_id = c.id

    with session_scope(app) as s:
        delete_client(s, get_client_by_id(s, client_id), user=_admin(s))

    with session_scope(app) as s:
        assert s.query(Client).count() == 0
        assert s.query(JourneyPage).count() == 0
        assert s.query(ContentVersion).count() == 0


def test_clients_list_requires_auth(client):
    r = client.get("/dashboard/")
    assert r.status_code == 302


def test_create_client_via_dashboard(client, app):
    _login(client)
    r = client.post(
        "/dashboard/clients/new",
        data={**_payload(), "csrf_token": _csrf(client)},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"TechCorp Solutions" in r.data
    assert b"Client created with token G" in r.data

    with session_scope(app) as s:
        c = s.query(Client).one()
        assert len(c.pages) == 4


def test_create_client_via_dashboard_validation_error(client, app):
    _login(client)
    r = client.post(
        "/dashboard/clients/new",
        data={**_payload(email="bad"), "csrf_token": _csrf(client)},
    )
    assert r.status_code == 400
    assert b"Email address is not valid" in r.data
    with session_scope(app) as s:
        assert s.query(Client).count() == 0


def test_clients_list_search_and_filters(client, app):
    with session_scope(app) as s:
        create_client(s, _payload(), user=_admin(s))
        create_client(s, _payload(company="Globex", email="hank@globex.test"), user=_admin(s), token="G7777")

    _login(client)
    r = client.get("/dashboard/?q=globex")
    assert r.status_code == 200
    assert b"Globex" in r.data
    assert b"TechCorp Solutions" not in r.data

    r = client.get("/dashboard/?q=G7777")
    assert b"Globex" in r.data

    r = client.get("/dashboard/?outcome=paid")
    assert b"No clients found" in r.data


def test_client_detail_and_delete_routes(client, app):
    with session_scope(app) as s:
        c = create_client(s, _payload(), user=_admin(s), token="G2468")
        client_id = c.id

    _login(client)
    r = client.get(f"/dashboard/clients/{client_id}")
    assert r.status_code == 200
    assert b"/activate/G2468" in r.data
    assert b"Change log" in r.data
    assert b"client.create" in r.data

    assert client.get("/dashboard/clients/9999").status_code == 404

    r = client.post(f"/dashboard/clients/{client_id}/delete", data={"csrf_token": _csrf(client)})
    assert r.status_code == 302
    with session_scope(app) as s:
        assert get_client_by_id(s, client_id) is None
