"""Tests for token-based client access to journey pages."""
import pytest

from app.genius import create_app
from app.genius.db import session_scope
from app.genius.models import Base
from app.genius.modules.clients.service import create_client, get_client_by_token
from app.genius.modules.journeys.service import get_page, update_page_content
from app.genius.models import User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("PORTAL_RATE_LIMIT", "5")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        u = User(email="admin@example.com", password_hash="x", is_active=True)
        s.add(u)
        s.flush()
        create_client(s, _payload("Acme", "ada@acme.test"), user=u, token="G1001")
        b = create_client(s, _payload("Globex", "hank@globex.test"), user=u, token="G2002")
        update_page_content(
            s,
            get_page(b, "agreement"),
            title="Globex Private Terms",
            content="Confidential pricing for Globex only.",
            hypothesis="Custom terms for a bigger account.",
            user=u,
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _payload(company, email):
    return {
        "company": company,
        "contact": "Pat",
        "email": email,
        "position": "Head of Ops",
        "hypothesis": "Wants a fast start.",
    }


def _csrf(client):
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def test_valid_token_page_loads(client):
    r = client.get("/activate/G1001/activation")
    assert r.status_code == 200
    assert b"Welcome to Template Genius" in r.data
    assert b"Acme" in r.data


def test_token_is_case_insensitive(client):
    r = client.get("/activate/g1001/agreement")
    assert r.status_code == 200
    assert b"Service Agreement" in r.data


@pytest.mark.parametrize("token", ["G9999", "G12", "ABCDE", "G1001x"])
def test_invalid_or_malformed_token_404(client, token):
    assert client.get(f"/activate/{token}/activation").status_code == 404
    assert client.get(f"/activate/{token}").status_code == 404


def test_unknown_page_type_404(client):
    assert client.get("/activate/G1001/payment").status_code == 404


def test_cross_client_isolation(client):
    # Same page type, other client's token: only that client's own content is ever served.
    r = client.get("/activate/G1001/agreement")
    assert r.status_code == 200
    assert b"Globex Private Terms" not in r.data
    assert b"Confidential pricing" not in r.data

    r = client.get("/activate/G2002/agreement")
    assert b"Globex Private Terms" in r.data


def test_landing_redirects_to_first_pending_then_active(client):
    r = client.get("/activate/G1001")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/activate/G1001/activation")

    r = client.get("/journey/G1001")
    assert r.status_code == 302

    r = client.get("/activate?token=g1001")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/activate/g1001")


def test_first_page_view_starts_journey_and_counts(app, client):
    client.get("/activate/G1001/activation")
    client.get("/activate/G1001/activation")
    with session_scope(app) as s:
        c = get_client_by_token(s, "G1001")
        page = get_page(c, "activation")
        assert page.status == "active"
        assert page.view_count == 2
        assert page.first_viewed_at is not None


def test_viewing_later_page_does_not_start_journey(app, client):
    client.get("/activate/G1001/confirmation")
    with session_scope(app) as s:
        c = get_client_by_token(s, "G1001")
        assert all(p.status == "pending" for p in c.pages)
        assert get_page(c, "confirmation").view_count == 1


def test_continue_advances_through_journey(app, client):
    client.get("/activate/G1001/activation")
    r = client.post("/activate/G1001/activation/continue", data={"csrf_token": _csrf(client)})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/activate/G1001/agreement")

    with session_scope(app) as s:
        c = get_client_by_token(s, "G1001")
        assert get_page(c, "activation").status == "completed"
        assert get_page(c, "agreement").status == "active"
        assert c.status == "activated"

    # Continue on a non-active page is a no-op redirect back
    r = client.post("/activate/G1001/activation/continue", data={"csrf_token": _csrf(client)})
    assert r.headers["Location"].endswith("/activate/G1001/activation")

    for page_type in ("agreement", "confirmation"):
        client.post(f"/activate/G1001/{page_type}/continue", data={"csrf_token": _csrf(client)})
    r = client.post("/activate/G1001/processing/continue", data={"csrf_token": _csrf(client)})
    assert r.headers["Location"].endswith("/activate/G1001")

    r = client.get("/activate/G1001")
    assert r.status_code == 200
    assert b"All steps are complete" in r.data


def test_continue_requires_csrf(client):
    client.get("/activate/G1001/activation")
    r = client.post("/activate/G1001/activation/continue")
    assert r.status_code == 400


def test_invalid_lookups_are_rate_limited(client):
    for _ in range(5):
        assert client.get("/activate/G0000").status_code == 404
    assert client.get("/activate/G0000").status_code == 429
    # Once limited, valid tokens from the same IP are refused too.
    assert client.get("/activate/G1001/activation").status_code == 429
