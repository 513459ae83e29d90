from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, request, url_for

from app.genius.db import db_session
from app.genius.models import User
from app.genius.modules.clients.service import get_client_by_id
from app.genius.modules.hypotheses.models import ContentHypothesis
from app.genius.modules.hypotheses.service import cancel_hypothesis, get_hypothesis, record_hypothesis_outcome
from app.genius.modules.journeys.service import get_page
from app.genius.rbac import require_permission

bp = Blueprint("hypotheses", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_hypothesis_or_404(client_id: int, page_type: str, hypothesis_id: int) -> ContentHypothesis:
    # Scoped lookup: the hypothesis must hang off this client's page.
    c = get_client_by_id(db_session(), client_id)
    if not c:
        abort(404)
    try:
        page = get_page(c, page_type)
    except ValueError:
        abort(404)
    h = get_hypothesis(page, hypothesis_id) if page else None
    if h is None:
        abort(404)
    return h


def _back(client_id: int, page_type: str):
    return redirect(url_for("journeys.journey_editor", client_id=client_id, page=page_type))


@bp.post("/journey/<int:client_id>/<page_type>/hypotheses/<int:hypothesis_id>/outcome")
@require_permission("journeys.edit")
def hypothesis_outcome(client_id: int, page_type: str, hypothesis_id: int):
    s = db_session()
    h = _get_hypothesis_or_404(client_id, page_type, hypothesis_id)
    validated = (request.form.get("validated") or "").strip().lower() in ("1", "true", "yes", "on")
    try:
        record_hypothesis_outcome(
            s,
            h,
            actual_outcome=request.form.get("actual_outcome") or "",
            validated=validated,
            user=_current_user(),
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id, page_type)
    flash(f"Hypothesis marked {h.status}.", "success")
    return _back(client_id, page_type)


@bp.post("/journey/<int:client_id>/<page_type>/hypotheses/<int:hypothesis_id>/cancel")
@require_permission("journeys.edit")
def hypothesis_cancel(client_id: int, page_type: str, hypothesis_id: int):
    s = db_session()
    h = _get_hypothesis_or_404(client_id, page_type, hypothesis_id)
    try:
        cancel_hypothesis(s, h, user=_current_user(), reason=request.form.get("reason"))
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back(client_id, page_type)
    flash("Hypothesis cancelled.", "success")
    return _back(client_id, page_type)
