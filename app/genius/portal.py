"""
Client-facing journey pages, reached by G-token only (no login).

Every lookup is scoped to the token's own client; anything that does not
resolve is a plain 404 so tokens cannot be probed for existence.
"""

from __future__ import annotations

from flask import Blueprint, abort, current_app, redirect, render_template, request, url_for

from app.genius.constants import PAGE_LABELS, PAGE_TYPES
from app.genius.db import db_session
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import get_client_by_token
from app.genius.modules.clients.utils import mask_token
from app.genius.modules.journeys.models import JourneyPage
from app.genius.modules.journeys.service import (
    advance_client_journey,
    get_client_journey_pages,
    get_client_journey_progress,
    get_page,
    record_page_view,
    start_client_journey,
)
from app.genius.security import note_attempt, too_many_attempts

bp = Blueprint("portal", __name__)

PORTAL_BUCKET = "portal_token"


def _rate_limited(ip: str) -> bool:
    return too_many_attempts(
        PORTAL_BUCKET,
        ip,
        limit=current_app.config["PORTAL_RATE_LIMIT"],
        window_seconds=current_app.config["PORTAL_RATE_WINDOW"],
    )


def _resolve_client_or_404(token: str) -> Client:
    ip = request.remote_addr or "unknown"
    if _rate_limited(ip):
        current_app.logger.warning("Portal rate limit hit (ip=%s)", ip)
        abort(429)
    c = get_client_by_token(db_session(), token)
    if c is None:
        note_attempt(PORTAL_BUCKET, ip)
        current_app.logger.info("Portal token not found (token=%s ip=%s)", mask_token(token), ip)
        abort(404)
    return c


def _resolve_page_or_404(c: Client, page_type: str) -> JourneyPage:
    try:
        page = get_page(c, page_type)
    except ValueError:
        abort(404)
    if page is None:
        abort(404)
    return page


def _journey_started(pages: list[JourneyPage]) -> bool:
    return any(p.status != "pending" for p in pages)


def _landing(c: Client):
    pages = get_client_journey_pages(c)
    active = next((p for p in pages if p.status == "active"), None)
    if active is not None:
        return redirect(url_for("portal.page_view", token=c.token, page_type=active.page_type))
    pending = next((p for p in pages if p.status == "pending"), None)
    if pending is not None:
        return redirect(url_for("portal.page_view", token=c.token, page_type=pending.page_type))
    return render_template(
        "portal/overview.html",
        client=c,
        pages=pages,
        progress=get_client_journey_progress(c),
        page_labels=PAGE_LABELS,
    )


@bp.get("/activate")
def activate_lookup():
    token = (request.args.get("token") or "").strip()
    if not token:
        return redirect(url_for("routes.index"))
    return redirect(url_for("portal.activate", token=token))


@bp.get("/activate/<token>")
def activate(token: str):
    return _landing(_resolve_client_or_404(token))


@bp.get("/journey/<token>")
def journey(token: str):
    return _landing(_resolve_client_or_404(token))


@bp.get("/activate/<token>/<page_type>")
def page_view(token: str, page_type: str):
    s = db_session()
    c = _resolve_client_or_404(token)
    page = _resolve_page_or_404(c, page_type)

    if page.page_order == 1 and not _journey_started(get_client_journey_pages(c)):
        start_client_journey(s, c)
    record_page_view(s, page)
    s.commit()

    pages = get_client_journey_pages(c)
    idx = PAGE_TYPES.index(page.page_type)
    return render_template(
        "portal/page.html",
        client=c,
        page=page,
        pages=pages,
        progress=get_client_journey_progress(c),
        page_labels=PAGE_LABELS,
        prev_type=PAGE_TYPES[idx - 1] if idx > 0 else None,
        next_type=PAGE_TYPES[idx + 1] if idx + 1 < len(PAGE_TYPES) else None,
    )


@bp.post("/activate/<token>/<page_type>/continue")
def page_continue(token: str, page_type: str):
    s = db_session()
    c = _resolve_client_or_404(token)
    page = _resolve_page_or_404(c, page_type)
    if page.status != "active":
        return redirect(url_for("portal.page_view", token=c.token, page_type=page.page_type))

    try:
        nxt = advance_client_journey(s, c)
        s.commit()
    except ValueError as e:
        s.rollback()
        current_app.logger.warning("Journey advance failed client_id=%s: %s", c.id, e)
        return redirect(url_for("portal.page_view", token=c.token, page_type=page.page_type))
    if nxt is None:
        return redirect(url_for("portal.activate", token=c.token))
    return redirect(url_for("portal.page_view", token=c.token, page_type=nxt.page_type))
