"""Tests for content hypotheses: outcomes, cancellation and per-page analytics."""
import json

import pytest
from werkzeug.security import generate_password_hash

from app.genius import create_app
from app.genius.db import session_scope
from app.genius.models import AuditEvent, Base, Permission, Role, User
from app.genius.modules.clients.service import create_client, get_client_by_id
from app.genius.modules.hypotheses.models import ContentHypothesis
from app.genius.modules.hypotheses.service import (
    cancel_hypothesis,
    create_hypothesis,
    get_current_active_hypothesis,
    hypothesis_analytics,
    list_hypotheses_for_page,
    parse_confidence,
    record_hypothesis_outcome,
)
from app.genius.modules.journeys.service import get_page, update_page_content
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
def client_id(app):
    with session_scope(app) as s:
        c = create_client(
            s,
            {
                "company": "Acme",
                "contact": "Ada",
                "email": "ada@acme.test",
                "position": "CTO",
                "hypothesis": "Values speed.",
            },
            user=_admin(s),
        )
        return c.id


def _admin(s):
    return s.query(User).filter(User.email == "admin@example.com").one()


def _csrf(client):
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _edit(s, client_id, page_type="activation", **kw):
    page = get_page(get_client_by_id(s, client_id), page_type)
    update_page_content(
        s,
        page,
        title=kw.pop("title", page.title + " (edited)"),
        content=page.content,
        hypothesis=kw.pop("hypothesis", "A sharper title helps."),
        user=_admin(s),
        **kw,
    )
    return page


@pytest.mark.parametrize("raw,expected", [(None, None), ("", None), (" 7 ", 7), (1, 1), (10, 10)])
def test_parse_confidence(raw, expected):
    assert parse_confidence(raw) == expected


@pytest.mark.parametrize("raw", ["0", "11", "seven", -3])
def test_parse_confidence_rejects(raw):
    with pytest.raises(ValueError):
        parse_confidence(raw)


def test_create_hypothesis_rejects_unknown_change_type(app, client_id):
    with session_scope(app) as s:
        page = get_page(get_client_by_id(s, client_id), "agreement")
        with pytest.raises(ValueError, match="change type"):
            create_hypothesis(s, page=page, version=None, hypothesis="x", change_type="layout", user=_admin(s))
        with pytest.raises(ValueError, match="required"):
            create_hypothesis(s, page=page, version=None, hypothesis=" ", change_type="content", user=_admin(s))


def test_record_outcome_validated_and_invalidated(app, client_id):
    with session_scope(app) as s:
        page = _edit(s, client_id)
        h = get_current_active_hypothesis(page)
        record_hypothesis_outcome(s, h, actual_outcome="Clicks up 20%", validated=True, user=_admin(s))
        assert h.status == "validated"
        assert h.actual_outcome == "Clicks up 20%"
        assert h.outcome_recorded_at is not None
        assert get_current_active_hypothesis(page) is None

        with pytest.raises(ValueError, match="Only active"):
            record_hypothesis_outcome(s, h, actual_outcome="again", validated=False, user=_admin(s))

        _edit(s, client_id, title="Second try", hypothesis="Shorter is better.")
        h2 = get_current_active_hypothesis(page)
        with pytest.raises(ValueError, match="actual outcome"):
            record_hypothesis_outcome(s, h2, actual_outcome="  ", validated=False, user=_admin(s))
        record_hypothesis_outcome(s, h2, actual_outcome="No change", validated=False, user=_admin(s))
        assert h2.status == "invalidated"

        s.flush()
        assert s.query(AuditEvent).filter(AuditEvent.action == "hypothesis.outcome").count() == 2


def test_cancel_records_reason_in_metadata(app, client_id):
    with session_scope(app) as s:
        page = _edit(s, client_id)
        h = get_current_active_hypothesis(page)
        cancel_hypothesis(s, h, user=_admin(s))
        assert h.status == "cancelled"
        meta = json.loads(h.metadata_json)
        assert meta["cancellation_reason"] == "User cancelled"
        assert "cancelled_at" in meta

        with pytest.raises(ValueError):
            cancel_hypothesis(s, h, user=_admin(s), reason="twice")


def test_hypotheses_listed_newest_first(app, client_id):
    with session_scope(app) as s:
        page = _edit(s, client_id, hypothesis="first")
        _edit(s, client_id, title="Another title", hypothesis="second")
        assert [h.hypothesis for h in list_hypotheses_for_page(page)] == ["second", "first"]


def test_hypothesis_analytics(app, client_id):
    with session_scope(app) as s:
        page = get_page(get_client_by_id(s, client_id), "processing")
        empty = hypothesis_analytics(page)
        assert empty["total_hypotheses"] == 0
        assert empty["average_confidence"] == 0
        assert empty["change_type_distribution"] == {"content": 0, "title": 0, "both": 0, "structure": 0}

        _edit(s, client_id, "processing", confidence_level=7)
        _edit(s, client_id, "processing", title="Next", confidence_level=8, change_type="structure")
        _edit(s, client_id, "processing", title="Third")
        hyps = list_hypotheses_for_page(page)
        record_hypothesis_outcome(s, hyps[0], actual_outcome="ok", validated=True, user=_admin(s))
        cancel_hypothesis(s, hyps[1], user=_admin(s))

        stats = hypothesis_analytics(page)
        assert stats["total_hypotheses"] == 3
        assert stats["active_hypotheses"] == 1
        assert stats["validated_hypotheses"] == 1
        assert stats["cancelled_hypotheses"] == 1
        assert stats["invalidated_hypotheses"] == 0
        assert stats["average_confidence"] == 7.5
        assert stats["change_type_distribution"]["title"] == 2
        assert stats["change_type_distribution"]["structure"] == 1


def test_outcome_route_is_scoped_to_client_page(app, client_id):
    with session_scope(app) as s:
        other = create_client(
            s,
            {
                "company": "Globex",
                "contact": "Hank",
                "email": "hank@globex.test",
                "position": "CEO",
                "hypothesis": "Budget first.",
            },
            user=_admin(s),
        )
        other_id = other.id
        _edit(s, client_id)
        hid = s.query(ContentHypothesis).one().id

    client = app.test_client()
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})

    url = f"/dashboard/journey/{other_id}/activation/hypotheses/{hid}/outcome"
    r = client.post(url, data={"csrf_token": _csrf(client), "actual_outcome": "x", "validated": "1"})
    assert r.status_code == 404

    url = f"/dashboard/journey/{client_id}/agreement/hypotheses/{hid}/outcome"
    r = client.post(url, data={"csrf_token": _csrf(client), "actual_outcome": "x", "validated": "1"})
    assert r.status_code == 404

    url = f"/dashboard/journey/{client_id}/activation/hypotheses/{hid}/outcome"
    r = client.post(url, data={"csrf_token": _csrf(client), "actual_outcome": "Signed in a day", "validated": "1"})
    assert r.status_code == 302
    assert "page=activation" in r.headers["Location"]

    with session_scope(app) as s:
        h = s.get(ContentHypothesis, hid)
        assert h.status == "validated"
        assert h.actual_outcome == "Signed in a day"


def test_cancel_route(app, client_id):
    with session_scope(app) as s:
        _edit(s, client_id)
        hid = s.query(ContentHypothesis).one().id

    client = app.test_client()
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.post(
        f"/dashboard/journey/{client_id}/activation/hypotheses/{hid}/cancel",
        data={"csrf_token": _csrf(client), "reason": "Wrong page"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Hypothesis cancelled." in r.data

    with session_scope(app) as s:
        h = s.get(ContentHypothesis, hid)
        assert h.status == "cancelled"
        assert json.loads(h.metadata_json)["cancellation_reason"] == "Wrong page"
