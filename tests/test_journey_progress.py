"""Tests for page status transitions and journey progress."""
import pytest

from app.genius import create_app
from app.genius.db import session_scope
from app.genius.models import Base
from app.genius.modules.clients.service import create_client, get_client_by_id
from app.genius.modules.journeys.service import (
    advance_client_journey,
    can_transition_to,
    get_client_journey_progress,
    get_page,
    record_page_view,
    set_page_status,
    start_client_journey,
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
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
            user=None,
        )
        return c.id


def _statuses(c):
    return [p.status for p in sorted(c.pages, key=lambda p: p.page_order)]


def test_new_journey_progress(app, client_id):
    with session_scope(app) as s:
        p = get_client_journey_progress(get_client_by_id(s, client_id))
        assert p.total_pages == 4
        assert p.completed_pages == 0
        assert p.active_page is None
        assert p.progress_percentage == 0
        assert p.current_step == 1
        assert p.is_finished is False


def test_start_activates_first_page_once(app, client_id):
    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        first = start_client_journey(s, c)
        assert first.page_type == "activation"
        assert _statuses(c) == ["active", "pending", "pending", "pending"]
        # idempotent
        assert start_client_journey(s, c).id == first.id


def test_advance_walks_the_journey(app, client_id):
    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        start_client_journey(s, c)

        nxt = advance_client_journey(s, c)
        assert nxt.page_type == "agreement"
        assert c.status == "activated"
        assert c.activated_at is not None
        assert get_page(c, "activation").completed_at is not None

        p = get_client_journey_progress(c)
        assert (p.completed_pages, p.progress_percentage, p.current_step) == (1, 25, 2)

        advance_client_journey(s, c)
        advance_client_journey(s, c)
        assert advance_client_journey(s, c) is None
        assert _statuses(c) == ["completed"] * 4

        p = get_client_journey_progress(c)
        assert p.progress_percentage == 100
        assert p.is_finished is True
        assert p.current_step == 4


@pytest.mark.parametrize(
    "start,target,ok",
    [
        ("pending", "active", True),
        ("pending", "skipped", True),
        ("pending", "completed", False),
        ("active", "completed", True),
        ("active", "pending", True),
        ("completed", "active", True),
        ("completed", "pending", False),
        ("skipped", "active", True),
        ("skipped", "completed", False),
    ],
)
def test_transition_rules(app, client_id, start, target, ok):
    with session_scope(app) as s:
        page = get_page(get_client_by_id(s, client_id), "processing")
        page.status = start
        allowed, errors = can_transition_to(page, target)
        assert allowed is ok
        assert bool(errors) is not ok


def test_only_one_active_page(app, client_id):
    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        set_page_status(s, get_page(c, "agreement"), "active", user=None)
        with pytest.raises(ValueError, match="already active"):
            set_page_status(s, get_page(c, "activation"), "active", user=None)
        assert sum(1 for p in c.pages if p.status == "active") == 1


def test_invalid_status_rejected(app, client_id):
    with session_scope(app) as s:
        page = get_page(get_client_by_id(s, client_id), "activation")
        with pytest.raises(ValueError):
            set_page_status(s, page, "archived", user=None)


def test_skipped_pages_are_not_finished_work(app, client_id):
    with session_scope(app) as s:
        c = get_client_by_id(s, client_id)
        start_client_journey(s, c)
        set_page_status(s, get_page(c, "confirmation"), "skipped", user=None)
        advance_client_journey(s, c)  # activation -> agreement
        assert advance_client_journey(s, c).page_type == "processing"
        p = get_client_journey_progress(c)
        assert p.completed_pages == 2
        assert p.progress_percentage == 50


def test_record_page_view(app, client_id):
    with session_scope(app) as s:
        page = get_page(get_client_by_id(s, client_id), "activation")
        record_page_view(s, page)
        first = page.first_viewed_at
        record_page_view(s, page)
        assert page.view_count == 2
        assert page.first_viewed_at == first
        assert page.last_viewed_at >= first
