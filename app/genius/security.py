import hmac
import secrets
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Request, current_app, session


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from the X-CSRF-Token header, form field, or JSON body."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        json_data = req.get_json(silent=True) or {}
        if isinstance(json_data, dict):
            token = json_data.get("csrf_token")

    expected = session.get("csrf_token")
    if not token or not expected:
        return False
    return hmac.compare_digest(str(token), str(expected))


def _attempts(bucket: str) -> dict[str, list[datetime]]:
    # In-process and per-app; each gunicorn worker counts on its own.
    buckets = current_app.extensions.setdefault("attempt_buckets", {})
    return buckets.setdefault(bucket, defaultdict(list))


def too_many_attempts(bucket: str, key: str, *, limit: int, window_seconds: int) -> bool:
    """True once `key` has `limit` recorded attempts inside the sliding window."""
    attempts = _attempts(bucket)
    cutoff = datetime.utcnow() - timedelta(seconds=window_seconds)
    attempts[key] = [t for t in attempts[key] if t > cutoff]
    return len(attempts[key]) >= limit


def note_attempt(bucket: str, key: str) -> None:
    _attempts(bucket)[key].append(datetime.utcnow())


def clear_attempts(bucket: str, key: str) -> None:
    _attempts(bucket).pop(key, None)
