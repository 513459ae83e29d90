"""
Journey pages, content versions and journey progress.

Invariants maintained here:
- every client has exactly the four PAGE_TYPES, orders 1..4
- page.title/page.content always equal the current ContentVersion
- exactly one ContentVersion per page has is_current=True
- at most one page per client is "active"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.genius.audit import record_event
from app.genius.constants import PAGE_STATUS_TRANSITIONS, PAGE_STATUSES, PAGE_TYPES
from app.genius.modules.hypotheses.service import create_hypothesis, validate_hypothesis_fields
from app.genius.modules.journeys.defaults import DEFAULT_PAGES, INITIAL_HYPOTHESIS
from app.genius.modules.journeys.models import ContentVersion, JourneyPage

if TYPE_CHECKING:
    from app.genius.models import User
    from app.genius.modules.clients.models import Client


@dataclass(frozen=True)
class JourneyProgress:
    total_pages: int
    completed_pages: int
    active_page: JourneyPage | None
    progress_percentage: int
    current_step: int
    is_finished: bool


def _now() -> datetime:
    return datetime.utcnow()


def create_journey_pages_for_client(s: Session, client: "Client", *, user: "User | None") -> list[JourneyPage]:
    """Seed the four default pages, each with version 1 as current."""
    if client.pages:
        raise ValueError("Journey pages already exist for this client.")

    now = _now()
    pages: list[JourneyPage] = []
    for tpl in DEFAULT_PAGES:
        page = JourneyPage(
            client=client,
            page_type=str(tpl["page_type"]),
            page_order=int(tpl["page_order"]),  # type: ignore[arg-type]
            title=str(tpl["title"]),
            content=str(tpl["content"]),
            status="pending",
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        s.add(page)
        s.add(
            ContentVersion(
                page=page,
                version_number=1,
                title=page.title,
                content=page.content,
                hypothesis=INITIAL_HYPOTHESIS,
                is_current=True,
                created_at=now,
                created_by_user_id=user.id if user else None,
            )
        )
        pages.append(page)
    s.flush()
    return pages


def get_client_journey_pages(client: "Client") -> list[JourneyPage]:
    return sorted(client.pages, key=lambda p: p.page_order)


def get_page(client: "Client", page_type: str) -> JourneyPage | None:
    """Client-scoped page lookup; a token can only ever reach its own client's pages."""
    page_type = (page_type or "").strip().lower()
    if page_type not in PAGE_TYPES:
        raise ValueError(f"Unknown page type: {page_type!r}")
    for page in client.pages:
        if page.page_type == page_type:
            return page
    return None


def get_current_version(page: JourneyPage) -> ContentVersion | None:
    for v in page.versions:
        if v.is_current:
            return v
    return None


def list_versions(page: JourneyPage) -> list[ContentVersion]:
    return sorted(page.versions, key=lambda v: v.version_number, reverse=True)


def get_version(page: JourneyPage, version_id: int) -> ContentVersion | None:
    for v in page.versions:
        if v.id == version_id:
            return v
    return None


def _derive_change_type(page: JourneyPage, title: str, content: str | None) -> str:
    title_changed = title != page.title
    content_changed = content != page.content
    if title_changed and content_changed:
        return "both"
    if title_changed:
        return "title"
    return "content"


def update_page_content(
    s: Session,
    page: JourneyPage,
    *,
    title: str,
    content: str | None,
    hypothesis: str,
    user: "User",
    change_type: str | None = None,
    predicted_outcome: str | None = None,
    confidence_level: int | str | None = None,
) -> ContentVersion:
    """Publish a new current version of the page. A hypothesis is mandatory for every edit."""
    title = (title or "").strip()
    content = (content or "").strip() or None
    hypothesis = (hypothesis or "").strip()
    if not hypothesis:
        raise ValueError("A hypothesis is required before changing page content.")
    if not title:
        raise ValueError("Title is required.")
    if title == page.title and content == page.content:
        raise ValueError("No changes to save.")

    change_type = (change_type or "").strip().lower() or _derive_change_type(page, title, content)
    confidence = validate_hypothesis_fields(change_type=change_type, confidence_level=confidence_level)

    now = _now()
    current = get_current_version(page)
    if current is not None:
        current.is_current = False
        # Demote before inserting the new row (partial unique index on is_current).
        s.flush()

    next_number = max((v.version_number for v in page.versions), default=0) + 1
    previous_content = page.content
    version = ContentVersion(
        page=page,
        version_number=next_number,
        title=title,
        content=content,
        hypothesis=hypothesis,
        is_current=True,
        created_at=now,
        created_by_user_id=user.id,
    )
    s.add(version)
    page.title = title
    page.content = content
    page.updated_at = now
    s.flush()

    create_hypothesis(
        s,
        page=page,
        version=version,
        hypothesis=hypothesis,
        change_type=change_type,
        predicted_outcome=predicted_outcome,
        confidence_level=confidence,
        previous_content=previous_content,
        new_content=content,
        user=user,
    )
    record_event(
        s,
        actor=user,
        action="journey.page.update",
        entity_type="JourneyPage",
        entity_id=str(page.id),
        reason=hypothesis[:512],
        metadata={
            "client_id": page.client_id,
            "page_type": page.page_type,
            "version_number": next_number,
            "change_type": change_type,
        },
    )
    return version


def restore_version(
    s: Session,
    page: JourneyPage,
    version: ContentVersion,
    *,
    user: "User",
    hypothesis: str,
) -> ContentVersion:
    """Re-publish an older version's content as a new current version."""
    if version.page_id != page.id:
        raise ValueError("Version does not belong to this page.")
    if version.is_current:
        raise ValueError("That version is already current.")
    new_version = update_page_content(
        s,
        page,
        title=version.title,
        content=version.content,
        hypothesis=hypothesis,
        user=user,
    )
    record_event(
        s,
        actor=user,
        action="journey.page.restore",
        entity_type="JourneyPage",
        entity_id=str(page.id),
        metadata={"restored_from": version.version_number, "new_version": new_version.version_number},
    )
    return new_version


def _mark_client_activated(s: Session, client: "Client", user: "User | None") -> None:
    if client.status == "activated":
        return
    client.status = "activated"
    client.activated_at = _now()
    client.updated_at = client.activated_at
    record_event(
        s,
        actor=user,
        action="client.status",
        entity_type="Client",
        entity_id=str(client.id),
        metadata={"from": "pending", "to": "activated", "trigger": "activation page completed"},
    )


def can_transition_to(page: JourneyPage, new_status: str) -> tuple[bool, list[str]]:
    errors: list[str] = []
    if new_status not in PAGE_STATUSES:
        errors.append(f"Invalid status: {new_status!r}")
        return False, errors
    if new_status not in PAGE_STATUS_TRANSITIONS.get(page.status, set()):
        errors.append(f"Cannot transition from '{page.status}' to '{new_status}'")
        return False, errors
    if new_status == "active":
        others = [p for p in page.client.pages if p.id != page.id and p.status == "active"]
        if others:
            errors.append(f"Another page is already active ({others[0].page_type}).")
    return len(errors) == 0, errors


def set_page_status(s: Session, page: JourneyPage, status: str, *, user: "User | None") -> JourneyPage:
    status = (status or "").strip().lower()
    if status == page.status:
        return page
    ok, errors = can_transition_to(page, status)
    if not ok:
        raise ValueError("; ".join(errors))

    old = page.status
    now = _now()
    page.status = status
    page.updated_at = now
    page.completed_at = now if status == "completed" else None
    s.flush()

    record_event(
        s,
        actor=user,
        action="journey.page.status",
        entity_type="JourneyPage",
        entity_id=str(page.id),
        metadata={"client_id": page.client_id, "page_type": page.page_type, "from": old, "to": status},
    )
    if status == "completed" and page.page_type == "activation":
        _mark_client_activated(s, page.client, user)
    return page


def start_client_journey(s: Session, client: "Client", *, user: "User | None" = None) -> JourneyPage:
    pages = get_client_journey_pages(client)
    if not pages:
        raise ValueError("No journey pages found for client.")
    active = next((p for p in pages if p.status == "active"), None)
    if active is not None:
        return active
    first = next((p for p in pages if p.page_order == 1), None)
    if first is None:
        raise ValueError("No first page found for client journey.")
    if first.status == "pending":
        set_page_status(s, first, "active", user=user)
    return first


def advance_client_journey(s: Session, client: "Client", *, user: "User | None" = None) -> JourneyPage | None:
    """Complete the active page and activate the next pending one. Returns the new active page, if any."""
    pages = get_client_journey_pages(client)
    active = next((p for p in pages if p.status == "active"), None)
    next_pending = next((p for p in pages if p.status == "pending"), None)

    if active is not None:
        set_page_status(s, active, "completed", user=user)
    if next_pending is not None:
        set_page_status(s, next_pending, "active", user=user)
        return next_pending
    return None


def get_client_journey_progress(client: "Client") -> JourneyProgress:
    pages = get_client_journey_pages(client)
    total = len(pages)
    completed = sum(1 for p in pages if p.status == "completed")
    active = next((p for p in pages if p.status == "active"), None)
    pending = next((p for p in pages if p.status == "pending"), None)
    pct = round(completed / total * 100) if total else 0

    if active is not None:
        step = active.page_order
    elif pending is not None:
        step = pending.page_order
    else:
        step = total or 1
    return JourneyProgress(
        total_pages=total,
        completed_pages=completed,
        active_page=active,
        progress_percentage=pct,
        current_step=step,
        is_finished=total > 0 and active is None and pending is None,
    )


def record_page_view(s: Session, page: JourneyPage) -> JourneyPage:
    now = _now()
    page.view_count = (page.view_count or 0) + 1
    if page.first_viewed_at is None:
        page.first_viewed_at = now
    page.last_viewed_at = now
    s.flush()
    return page
