from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.genius.constants import HYPOTHESIS_ACCURACY, LEARNING_PRIORITIES, OUTCOMES
from app.genius.db import db_session
from app.genius.models import User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import get_client_by_id
from app.genius.modules.outcomes.models import JourneyOutcome
from app.genius.modules.outcomes.service import (
    NOTE_FIELDS,
    delete_outcome,
    get_outcome,
    record_outcome,
    search_notes,
    update_outcome,
)
from app.genius.rbac import require_permission

bp = Blueprint("outcomes", __name__)

OUTCOME_FORM_FIELDS = (
    "journey_outcome",
    "revenue_amount",
    "hypothesis_accuracy",
    "confidence_in_analysis",
    "outcome_tags",
    "learning_priority",
    *NOTE_FIELDS,
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload_from_form() -> dict[str, str | None]:
    return {f: request.form.get(f) for f in OUTCOME_FORM_FIELDS}


def _get_client_or_404(client_id: int) -> Client:
    c = get_client_by_id(db_session(), client_id)
    if not c:
        abort(404)
    return c


def _get_outcome_or_404(client: Client, outcome_id: int) -> JourneyOutcome:
    o = get_outcome(client, outcome_id)
    if o is None:
        abort(404)
    return o


def _back(client_id: int):
    return redirect(url_for("clients.client_detail", client_id=client_id) + "#outcomes")


@bp.post("/clients/<int:client_id>/outcomes")
@require_permission("outcomes.record")
def outcome_record(client_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    try:
        o = record_outcome(s, c, _payload_from_form(), user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id)
    flash(f"Outcome recorded: {o.journey_outcome}.", "success")
    return _back(client_id)


@bp.post("/clients/<int:client_id>/outcomes/<int:outcome_id>")
@require_permission("outcomes.record")
def outcome_update(client_id: int, outcome_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    o = _get_outcome_or_404(c, outcome_id)
    try:
        update_outcome(s, o, _payload_from_form(), user=_current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id)
    flash("Outcome updated.", "success")
    return _back(client_id)


@bp.post("/clients/<int:client_id>/outcomes/<int:outcome_id>/delete")
@require_permission("outcomes.record")
def outcome_delete(client_id: int, outcome_id: int):
    s = db_session()
    c = _get_client_or_404(client_id)
    o = _get_outcome_or_404(c, outcome_id)
    delete_outcome(s, o, user=_current_user())
    s.commit()
    flash("Outcome deleted.", "success")
    return _back(client_id)


@bp.get("/notes")
@require_permission("clients.view")
def notes_search():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    outcome = (request.args.get("outcome") or "").strip()
    tag = (request.args.get("tag") or "").strip()
    priority = (request.args.get("priority") or "").strip()
    results = search_notes(
        s,
        q=q,
        outcome=outcome if outcome in OUTCOMES else None,
        tag=tag,
        priority=priority if priority in LEARNING_PRIORITIES else None,
        limit=200,
    )
    return render_template(
        "dashboard/notes.html",
        results=results,
        q=q,
        outcome=outcome,
        tag=tag,
        priority=priority,
        outcome_choices=OUTCOMES,
        priority_choices=LEARNING_PRIORITIES,
        accuracy_choices=HYPOTHESIS_ACCURACY,
    )
