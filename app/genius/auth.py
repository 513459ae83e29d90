"""
Admin login for the dashboard. Clients never log in; they use their G-token.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from app.genius.audit import record_event
from app.genius.db import db_session
from app.genius.models import User
from app.genius.security import clear_attempts, note_attempt, too_many_attempts

bp = Blueprint("auth", __name__)

LOGIN_BUCKET = "login"
LOGIN_RATE_LIMIT = 5
LOGIN_RATE_WINDOW = 300  # seconds


def load_current_user() -> None:
    """
    Sets g.request_id and g.current_user (from the signed session cookie).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None

    user_id = session.get("user_id")
    if not user_id:
        return
    try:
        user = db_session().get(User, int(user_id))
    except (SQLAlchemyError, ValueError) as e:
        current_app.logger.error("Could not load session user (request_id=%s): %s", g.request_id, e)
        session.pop("user_id", None)
        return
    if user is None or not user.is_active:
        session.pop("user_id", None)
        return
    g.current_user = user


def _authenticate(s: Session, email: str, password: str) -> User | None:
    user = s.query(User).filter(User.email == email).one_or_none()
    if user is None or not user.is_active:
        return None
    if not check_password_hash(user.password_hash, password):
        return None
    return user


def _safe_next(nxt: str) -> str | None:
    # Local paths only; anything else would be an open redirect.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


@bp.get("/login")
def login_get():
    return render_template("auth/login.html", next=(request.args.get("next") or "").strip())


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if too_many_attempts(LOGIN_BUCKET, ip, limit=LOGIN_RATE_LIMIT, window_seconds=LOGIN_RATE_WINDOW):
        current_app.logger.warning("Login rate limit hit (ip=%s)", ip)
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))
    note_attempt(LOGIN_BUCKET, ip)

    s = db_session()
    user = _authenticate(s, email, password)
    if user is None:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
        )
        s.commit()
        current_app.logger.info("Login failed (ip=%s request_id=%s)", ip, getattr(g, "request_id", None))
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    session["user_id"] = user.id
    user.last_login_at = datetime.utcnow()
    clear_attempts(LOGIN_BUCKET, ip)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return redirect(_safe_next(nxt) or url_for("clients.clients_list"))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
