from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy import or_

from app.genius.audit import events_for_entity
from app.genius.constants import CLIENT_STATUSES, HYPOTHESIS_ACCURACY, LEARNING_PRIORITIES, OUTCOMES
from app.genius.db import db_session
from app.genius.models import User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import (
    PROFILE_FIELDS,
    create_client,
    delete_client,
    get_client_by_id,
    regenerate_token,
    set_client_status,
    update_client,
)
from app.genius.modules.journeys.service import get_client_journey_pages, get_client_journey_progress
from app.genius.modules.outcomes.service import list_outcomes
from app.genius.rbac import require_permission

bp = Blueprint("clients", __name__)

PER_PAGE = 50


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload_from_form() -> dict[str, str | None]:
    return {f: request.form.get(f) for f in PROFILE_FIELDS}


def _get_client_or_404(client_id: int) -> Client:
    c = get_client_by_id(db_session(), client_id)
    if not c:
        abort(404)
    return c


@bp.get("/")
@require_permission("clients.view")
def clients_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    status = (request.args.get("status") or "").strip()
    outcome = (request.args.get("outcome") or "").strip()
    try:
        page = max(int(request.args.get("page") or "1"), 1)
    except ValueError:
        page = 1

    query = s.query(Client)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Client.company.ilike(like),
                Client.contact.ilike(like),
                Client.email.ilike(like),
                Client.token.ilike(like),
            )
        )
    if status in CLIENT_STATUSES:
        query = query.filter(Client.status == status)
    if outcome in OUTCOMES:
        query = query.filter(Client.journey_outcome == outcome)

    total = query.count()
    clients = (
        query.order_by(Client.created_at.desc(), Client.id.desc())
        .offset((page - 1) * PER_PAGE)
        .limit(PER_PAGE)
        .all()
    )
    progress = {c.id: get_client_journey_progress(c) for c in clients}

    return render_template(
        "dashboard/clients/list.html",
        clients=clients,
        progress=progress,
        q=q,
        status=status,
        outcome=outcome,
        statuses=CLIENT_STATUSES,
        outcomes=OUTCOMES,
        page=page,
        total=total,
        has_prev=page > 1,
        has_next=page * PER_PAGE < total,
    )


@bp.get("/clients/new")
@require_permission("clients.create")
def clients_new_get():
    return render_template("dashboard/clients/new.html", form={})


@bp.post("/clients/new")
@require_permission("clients.create")
def clients_new_post():
    s = db_session()
    payload = _payload_from_form()
    try:
        c = create_client(s, payload, user=_current_user(), max_attempts=current_app.config["TOKEN_MAX_ATTEMPTS"])
        s.commit()
    except (ValueError, RuntimeError) as e:
        s.rollback()
        flash(str(e), "danger")
        return render_template("dashboard/clients/new.html", form=payload), 400
    current_app.logger.info("Client created id=%s", c.id)
    flash(f"Client created with token {c.token}.", "success")
    return redirect(url_for("clients.client_detail", client_id=c.id))


@bp.get("/clients/<int:client_id>")
@require_permission("clients.view")
def client_detail(client_id: int):
    c = _get_client_or_404(client_id)
    return render_template(
        "dashboard/clients/detail.html",
        client=c,
        pages=get_client_journey_pages(c),
        progress=get_client_journey_progress(c),
        outcomes=list_outcomes(c),
        outcome_choices=OUTCOMES,
        accuracy_choices=HYPOTHESIS_ACCURACY,
        priority_choices=LEARNING_PRIORITIES,
        statuses=CLIENT_STATUSES,
        history=events_for_entity(db_session(), "Client", c.id, limit=20),
    )


@bp.post("/clients/<int:client_id>")
@require_permission("clients.edit")
def client_update(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        update_client(s, c, _payload_from_form(), user=_current_user(), reason=request.form.get("reason") or "")
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.client_detail", client_id=client_id))
    flash("Client updated.", "success")
    return redirect(url_for("clients.client_detail", client_id=client_id))


@bp.post("/clients/<int:client_id>/status")
@require_permission("clients.edit")
def client_status(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        set_client_status(s, c, request.form.get("status") or "", user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.client_detail", client_id=client_id))
    flash(f"Status set to {c.status}.", "success")
    return redirect(url_for("clients.client_detail", client_id=client_id))


@bp.post("/clients/<int:client_id>/token")
@require_permission("clients.edit")
def client_regenerate_token(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        regenerate_token(
            s,
            c,
            user=_current_user(),
            reason=request.form.get("reason") or "",
            max_attempts=current_app.config["TOKEN_MAX_ATTEMPTS"],
        )
        s.commit()
    except (ValueError, RuntimeError) as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.client_detail", client_id=client_id))
    flash(f"New token issued: {c.token}. The previous link no longer works.", "success")
    return redirect(url_for("clients.client_detail", client_id=client_id))


@bp.post("/clients/<int:client_id>/delete")
@require_permission("clients.delete")
def client_delete(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    company = c.company
    delete_client(s, c, user=_current_user())
    s.commit()
    flash(f"Deleted client {company}.", "success")
    return redirect(url_for("clients.clients_list"))
