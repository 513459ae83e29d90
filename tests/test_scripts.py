"""Tests for the seed and demo-data scripts."""
import pytest

from app.genius.models import Base, Role, User
from app.genius.modules.clients.models import Client
from app.genius.rbac import PERMISSIONS
from scripts import create_demo_client, init_db
from scripts._db_utils import create_script_engine, script_session


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("ADMIN_EMAIL", "Owner@Example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "s3cret")
    engine = create_script_engine(url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return url


def test_seed_is_idempotent(db_url):
    init_db.seed_only(database_url=db_url)
    init_db.seed_only(database_url=db_url)

    with script_session(db_url) as s:
        roles = {r.key: r for r in s.query(Role).all()}
        assert set(roles) == {"admin", "editor", "viewer"}
        assert {p.key for p in roles["admin"].permissions} == set(PERMISSIONS)
        assert {p.key for p in roles["viewer"].permissions} == {"clients.view", "analytics.view"}
        assert "clients.delete" not in {p.key for p in roles["editor"].permissions}

        users = s.query(User).all()
        assert [u.email for u in users] == ["owner@example.com"]
        assert [r.key for r in users[0].roles] == ["admin"]


def test_demo_client_created_once(db_url):
    assert create_demo_client.create_demo_client(database_url=db_url) == "G1001"
    assert create_demo_client.create_demo_client(database_url=db_url) == "G1001"

    with script_session(db_url) as s:
        c = s.query(Client).one()
        assert c.company == "TechCorp Solutions"
        assert len(c.pages) == 4
