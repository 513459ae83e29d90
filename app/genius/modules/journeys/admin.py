from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import IntegrityError

from app.genius.constants import CHANGE_TYPES, PAGE_LABELS, PAGE_STATUSES, PAGE_TYPES
from app.genius.db import db_session
from app.genius.models import User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import get_client_by_id
from app.genius.modules.hypotheses.service import hypothesis_analytics, list_hypotheses_for_page
from app.genius.modules.journeys.models import JourneyPage
from app.genius.modules.journeys.service import (
    advance_client_journey,
    get_client_journey_pages,
    get_client_journey_progress,
    get_current_version,
    get_page,
    get_version,
    list_versions,
    restore_version,
    set_page_status,
    start_client_journey,
    update_page_content,
)
from app.genius.rbac import require_permission

bp = Blueprint("journeys", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_client_or_404(client_id: int) -> Client:
    c = get_client_by_id(db_session(), client_id)
    if not c:
        abort(404)
    return c


def _get_page_or_404(client: Client, page_type: str) -> JourneyPage:
    try:
        page = get_page(client, page_type)
    except ValueError:
        abort(404)
    if page is None:
        abort(404)
    return page


def _back(client_id: int, page_type: str | None = None):
    return redirect(url_for("journeys.journey_editor", client_id=client_id, page=page_type))


def _version_conflict(client_id: int, page_type: str):
    # Another edit took the same version number first.
    current_app.logger.warning("Version conflict client_id=%s page=%s", client_id, page_type)
    flash("This page was changed by someone else. Reload and try again.", "warning")
    return _back(client_id, page_type.lower())


@bp.get("/journey/<int:client_id>")
@require_permission("clients.view")
def journey_editor(client_id: int):
    c = _get_client_or_404(client_id)
    selected = (request.args.get("page") or PAGE_TYPES[0]).strip().lower()
    if selected not in PAGE_TYPES:
        selected = PAGE_TYPES[0]
    page = _get_page_or_404(c, selected)

    return render_template(
        "dashboard/journey/editor.html",
        client=c,
        pages=get_client_journey_pages(c),
        page=page,
        selected=selected,
        page_labels=PAGE_LABELS,
        current_version=get_current_version(page),
        versions=list_versions(page),
        hypotheses=list_hypotheses_for_page(page),
        hypothesis_stats=hypothesis_analytics(page),
        progress=get_client_journey_progress(c),
        change_types=CHANGE_TYPES,
        page_statuses=PAGE_STATUSES,
    )


@bp.post("/journey/<int:client_id>/<page_type>/content")
@require_permission("journeys.edit")
def journey_update_content(client_id: int, page_type: str):
    s = db_session()
    c = _get_client_or_404(client_id)
    page = _get_page_or_404(c, page_type)
    try:
        v = update_page_content(
            s,
            page,
            title=request.form.get("title") or "",
            content=request.form.get("content"),
            hypothesis=request.form.get("hypothesis") or "",
            user=_current_user(),
            change_type=request.form.get("change_type"),
            predicted_outcome=request.form.get("predicted_outcome"),
            confidence_level=request.form.get("confidence_level"),
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id, page.page_type)
    except IntegrityError:
        s.rollback()
        return _version_conflict(client_id, page_type)
    current_app.logger.info("Journey page updated client_id=%s page=%s version=%s", client_id, page_type, v.version_number)
    flash(f"Saved version {v.version_number}.", "success")
    return _back(client_id, page.page_type)


@bp.post("/journey/<int:client_id>/<page_type>/versions/<int:version_id>/restore")
@require_permission("journeys.edit")
def journey_restore_version(client_id: int, page_type: str, version_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    page = _get_page_or_404(c, page_type)
    version = get_version(page, version_id)
    if version is None:
        abort(404)
    try:
        v = restore_version(
            s,
            page,
            version,
            user=_current_user(),
            hypothesis=request.form.get("hypothesis") or "",
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id, page.page_type)
    except IntegrityError:
        s.rollback()
        return _version_conflict(client_id, page_type)
    flash(f"Restored version {version.version_number} as version {v.version_number}.", "success")
    return _back(client_id, page.page_type)


@bp.post("/journey/<int:client_id>/<page_type>/status")
@require_permission("journeys.edit")
def journey_page_status(client_id: int, page_type: str):
    s = db_session()
    c = _get_client_or_404(client_id)
    page = _get_page_or_404(c, page_type)
    try:
        set_page_status(s, page, request.form.get("status") or "", user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id, page.page_type)
    flash(f"{PAGE_LABELS[page.page_type]} is now {page.status}.", "success")
    return _back(client_id, page.page_type)


@bp.post("/journey/<int:client_id>/start")
@require_permission("journeys.edit")
def journey_start(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        page = start_client_journey(s, c, user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id)
    flash(f"Journey started at {PAGE_LABELS[page.page_type]}.", "success")
    return _back(client_id, page.page_type)


@bp.post("/journey/<int:client_id>/advance")
@require_permission("journeys.edit")
def journey_advance(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        page = advance_client_journey(s, c, user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id)
    if page is None:
        flash("Journey complete.", "success")
        return _back(client_id)
    flash(f"Advanced to {PAGE_LABELS[page.page_type]}.", "success")
    return _back(client_id, page.page_type)
