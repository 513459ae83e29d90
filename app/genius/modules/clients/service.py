"""
Client records and their G-tokens.

Creating a client always creates its four journey pages in the same
transaction; callers commit once at the end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.genius.audit import diff_snapshots, record_event, snapshot
from app.genius.constants import CLIENT_STATUSES
from app.genius.models import User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.utils import (
    is_valid_email,
    is_valid_token,
    normalize_email,
    normalize_token,
    random_token,
)
from app.genius.modules.journeys.service import create_journey_pages_for_client

PROFILE_FIELDS = ("company", "contact", "email", "position", "salary", "logo", "hypothesis")
_INSERT_RETRIES = 3


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


def validate_client_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    for field, label in (
        ("company", "Company"),
        ("contact", "Contact name"),
        ("email", "Email"),
        ("position", "Position"),
    ):
        if not (payload.get(field) or "").strip():
            errs.append(ValidationError(field, f"{label} is required."))
    if not (payload.get("hypothesis") or "").strip():
        errs.append(ValidationError("hypothesis", "Journey hypothesis is required."))
    email = (payload.get("email") or "").strip()
    if email and not is_valid_email(email):
        errs.append(ValidationError("email", "Email address is not valid."))
    logo = (payload.get("logo") or "").strip()
    if logo and not logo.startswith(("http://", "https://")):
        errs.append(ValidationError("logo", "Logo must be an http(s) URL."))
    return errs


def format_errors(errs: list[ValidationError]) -> str:
    return "; ".join(f"{e.field}: {e.message}" for e in errs)


def get_client_by_id(s: Session, client_id: int) -> Client | None:
    return s.query(Client).filter(Client.id == client_id).one_or_none()


def get_client_by_token(s: Session, token: str | None) -> Client | None:
    """Exact lookup after normalization. Malformed tokens never hit the database."""
    tok = normalize_token(token)
    if not is_valid_token(tok):
        return None
    return s.query(Client).filter(Client.token == tok).one_or_none()


def find_client_by_email(s: Session, email: str) -> Client | None:
    return s.query(Client).filter(Client.email == normalize_email(email)).one_or_none()


def generate_unique_token(s: Session, max_attempts: int = 100) -> str:
    for _ in range(max_attempts):
        token = random_token()
        exists = s.query(Client.id).filter(Client.token == token).first()
        if not exists:
            return token
    raise RuntimeError("Unable to generate unique token after multiple attempts")


def _clean(payload: dict[str, Any], field: str) -> str | None:
    return (payload.get(field) or "").strip() or None


def create_client(
    s: Session,
    payload: dict[str, Any],
    *,
    user: User | None,
    max_attempts: int = 100,
    token: str | None = None,
) -> Client:
    """Pass `token` to pin a specific G-token (demo data); otherwise one is generated."""
    errs = validate_client_payload(payload)
    if errs:
        raise ValueError(format_errors(errs))
    if token is not None:
        token = normalize_token(token)
        if not is_valid_token(token):
            raise ValueError("Token must look like G followed by 4 digits.")
        if get_client_by_token(s, token):
            raise ValueError(f"Token {token} is already in use.")

    email = normalize_email(payload.get("email"))
    if find_client_by_email(s, email):
        raise ValueError("A client with this email already exists.")

    now = datetime.utcnow()
    c: Client | None = None
    for _ in range(1 if token is not None else _INSERT_RETRIES):
        candidate = token or generate_unique_token(s, max_attempts)
        try:
            # SAVEPOINT: another request may claim the same token between lookup and insert.
            with s.begin_nested():
                c = Client(
                    company=_clean(payload, "company"),
                    contact=_clean(payload, "contact"),
                    email=email,
                    position=_clean(payload, "position"),
                    salary=_clean(payload, "salary"),
                    logo=_clean(payload, "logo"),
                    hypothesis=(payload.get("hypothesis") or "").strip(),
                    token=candidate,
                    status="pending",
                    journey_outcome="pending",
                    created_at=now,
                    updated_at=now,
                )
                s.add(c)
                s.flush()
            break
        except IntegrityError:
            c = None
            if find_client_by_email(s, email):
                raise ValueError("A client with this email already exists.")
    if c is None:
        raise RuntimeError("Unable to store client: token collisions on every attempt")

    create_journey_pages_for_client(s, c, user=user)
    record_event(
        s,
        actor=user,
        action="client.create",
        entity_type="Client",
        entity_id=str(c.id),
        metadata={"company": c.company, "email": c.email, "token": c.token},
    )
    return c


def update_client(s: Session, c: Client, payload: dict[str, Any], *, user: User, reason: str) -> Client:
    if not (reason or "").strip():
        raise ValueError("Reason for change is required.")
    errs = validate_client_payload(payload)
    if errs:
        raise ValueError(format_errors(errs))

    email = normalize_email(payload.get("email"))
    other = find_client_by_email(s, email)
    if other and other.id != c.id:
        raise ValueError("A client with this email already exists.")

    before = snapshot(c, PROFILE_FIELDS)
    c.company = _clean(payload, "company")
    c.contact = _clean(payload, "contact")
    c.email = email
    c.position = _clean(payload, "position")
    c.salary = _clean(payload, "salary")
    c.logo = _clean(payload, "logo")
    c.hypothesis = (payload.get("hypothesis") or "").strip()
    after = snapshot(c, PROFILE_FIELDS)

    changes = diff_snapshots(before, after)
    if changes["fields_changed"]:
        c.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="client.update",
        entity_type="Client",
        entity_id=str(c.id),
        reason=reason.strip(),
        metadata=changes,
    )
    return c


def set_client_status(s: Session, c: Client, status: str, *, user: User | None) -> Client:
    status = (status or "").strip().lower()
    if status not in CLIENT_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(CLIENT_STATUSES)}")
    if c.status == status:
        return c

    old = c.status
    c.status = status
    c.activated_at = datetime.utcnow() if status == "activated" else None
    c.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="client.status",
        entity_type="Client",
        entity_id=str(c.id),
        metadata={"from": old, "to": status},
    )
    return c


def regenerate_token(s: Session, c: Client, *, user: User, reason: str, max_attempts: int = 100) -> Client:
    """Issue a fresh token; the old link stops resolving immediately."""
    if not (reason or "").strip():
        raise ValueError("Reason for change is required.")
    old = c.token
    c.token = generate_unique_token(s, max_attempts)
    c.updated_at = datetime.utcnow()
    s.flush()
    record_event(
        s,
        actor=user,
        action="client.token_regenerate",
        entity_type="Client",
        entity_id=str(c.id),
        reason=reason.strip(),
        metadata={"old_token": old, "new_token": c.token},
    )
    return c


def delete_client(s: Session, c: Client, *, user: User) -> None:
    record_event(
        s,
        actor=user,
        action="client.delete",
        entity_type="Client",
        entity_id=str(c.id),
        metadata={"company": c.company, "email": c.email, "token": c.token},
    )
    s.delete(c)
