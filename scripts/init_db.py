"""
Seed permissions, roles and the first admin user.

Idempotent: missing rows are added, existing passwords are never touched.

Usage:
  ADMIN_EMAIL=you@example.com ADMIN_PASSWORD=... python scripts/init_db.py
"""
import os
import sys
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.genius.models import Permission, Role, User  # noqa: E402
from app.genius.rbac import PERMISSIONS, ROLES  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def _ensure_permissions(s: Session) -> dict[str, Permission]:
    existing = {p.key: p for p in s.query(Permission).all()}
    for key, name in PERMISSIONS.items():
        if key not in existing:
            existing[key] = Permission(key=key, name=name)
            s.add(existing[key])
    return existing


def _ensure_role(s: Session, key: str, name: str, perms: list[Permission]) -> Role:
    role = s.query(Role).filter(Role.key == key).one_or_none()
    if role is None:
        role = Role(key=key, name=name)
        s.add(role)
    for p in perms:
        if p not in role.permissions:
            role.permissions.append(p)
    return role


def seed_only(*, database_url: str | None = None) -> None:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(resolve_database_url(database_url)) as s:
        perms = _ensure_permissions(s)
        roles = {
            key: _ensure_role(s, key, name, [perms[k] for k in keys]) for key, (name, keys) in ROLES.items()
        }

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        created = user is None
        if created:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

    print(f"Seeded {len(PERMISSIONS)} permissions and roles: {', '.join(ROLES)}.")
    print(f"Admin user {admin_email} ({'created' if created else 'already present'}).")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
