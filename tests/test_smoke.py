import pytest
from werkzeug.security import generate_password_hash

from app.genius import create_app
from app.genius.config import normalize_database_url
from app.genius.db import session_scope
from app.genius.models import Base, Permission, Role, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        p = Permission(key="admin.view", name="Admin: view shell")
        r = Role(key="admin", name="Administrator")
        r.permissions.append(p)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([p, r, u])

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_has_token_form(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b'name="token"' in r.data


def test_login_and_admin_access(client):
    # Anonymous gets sent to login
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"System status" in r.data
    assert b"Recent logins" in r.data

    r = client.get("/admin/audit")
    assert r.status_code == 200
    assert b"auth.login" in r.data


def test_bad_password_rejected(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"}, follow_redirects=True)
    assert b"Invalid credentials" in r.data
    r = client.get("/admin/")
    assert r.status_code == 302


def test_missing_permission_is_403(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    # admin role in this fixture only has admin.view
    r = client.get("/dashboard/")
    assert r.status_code == 403
    assert b"clients.view" in r.data


def test_post_without_csrf_is_400(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.post("/dashboard/clients/new", data={"company": "X"})
    assert r.status_code == 400


def test_unknown_route_404(client):
    r = client.get("/no-such-page")
    assert r.status_code == 404


def test_login_is_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"})
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data
    assert client.get("/admin/").status_code == 302


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("postgres://u:p@db/genius", "postgresql+psycopg://u:p@db/genius"),
        ("postgresql://u:p@db/genius", "postgresql+psycopg://u:p@db/genius"),
        ("postgresql+psycopg://u:p@db/genius", "postgresql+psycopg://u:p@db/genius"),
        ("sqlite:///genius.db", "sqlite:///genius.db"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected


def test_production_refuses_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
