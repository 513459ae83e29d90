from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, flash, g, render_template, request
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from app.genius.db import db_session
from app.genius.models import AuditEvent, User
from app.genius.modules.clients.models import Client
from app.genius.modules.hypotheses.models import ContentHypothesis
from app.genius.modules.journeys.models import ContentVersion, JourneyPage
from app.genius.modules.outcomes.models import JourneyOutcome
from app.genius.rbac import require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "counts": {},
        "clients_by_status": {},
        "active_journeys": 0,
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
        status["counts"] = {
            "clients": s.query(func.count(Client.id)).scalar() or 0,
            "content_versions": s.query(func.count(ContentVersion.id)).scalar() or 0,
            "hypotheses": s.query(func.count(ContentHypothesis.id)).scalar() or 0,
            "outcomes": s.query(func.count(JourneyOutcome.id)).scalar() or 0,
        }
        status["clients_by_status"] = dict(
            s.query(Client.status, func.count(Client.id)).group_by(Client.status).all()
        )
        status["active_journeys"] = (
            s.query(func.count(func.distinct(JourneyPage.client_id))).filter(JourneyPage.status == "active").scalar()
            or 0
        )
        recent_logins = (
            s.query(User)
            .filter(User.last_login_at.isnot(None))
            .order_by(User.last_login_at.desc())
            .limit(10)
            .all()
        )
    except SQLAlchemyError as e:
        s.rollback()
        current_app.logger.error("Admin status DB check failed (request_id=%s): %s", getattr(g, "request_id", None), e)
        status["db_error"] = str(e)
        recent_logins = []

    return render_template("admin/index.html", system_status=status, recent_logins=recent_logins)


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Audit trail (last 200 events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/audit.html",
        events=events,
        action=action,
        actor_email=actor_email,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )
