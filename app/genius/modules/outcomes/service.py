"""
Journey outcomes: what happened with a client, and what we learned from it.

Every record/update/delete re-syncs the Client summary columns
(journey_outcome, outcome_recorded_at, outcome_notes, revenue_amount)
from the newest remaining outcome row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.genius.audit import diff_snapshots, record_event, snapshot
from app.genius.constants import HYPOTHESIS_ACCURACY, LEARNING_PRIORITIES, OUTCOMES
from app.genius.models import User
from app.genius.modules.clients.models import Client
from app.genius.modules.clients.service import ValidationError, format_errors
from app.genius.modules.outcomes.models import JourneyOutcome

# Numeric(10, 2) on journey_outcomes and clients.
MAX_REVENUE = Decimal("99999999.99")

NOTE_FIELDS = (
    "outcome_notes",
    "conversion_factors",
    "missed_opportunities",
    "next_time_improvements",
    "timeline_notes",
    "behavior_observations",
    "revenue_intelligence",
    "competitive_notes",
    "actionable_insights",
)
EDITABLE_FIELDS = (
    "journey_outcome",
    "revenue_amount",
    "hypothesis_accuracy",
    "learning_priority",
    "confidence_in_analysis",
    "outcome_tags",
    *NOTE_FIELDS,
)


def parse_tags(raw: str | list[str] | None) -> list[str]:
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    out: list[str] = []
    seen: set[str] = set()
    for p in parts:
        t = (p or "").strip().lower()
        if t and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def parse_revenue(raw: Any) -> Decimal | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = Decimal(str(raw).strip().replace(",", ""))
    except InvalidOperation:
        raise ValueError("Revenue must be a number.")
    if not value.is_finite():
        raise ValueError("Revenue must be a number.")
    if abs(value) > MAX_REVENUE:
        raise ValueError(f"Revenue cannot exceed {MAX_REVENUE:,}.")
    try:
        return value.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValueError("Revenue must be a number.")


def _parse_confidence(raw: Any) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValueError("Confidence must be a whole number.")


def validate_outcome_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    outcome = (payload.get("journey_outcome") or "").strip().lower()
    if outcome not in OUTCOMES:
        errs.append(ValidationError("journey_outcome", f"Outcome must be one of: {', '.join(OUTCOMES)}."))

    try:
        revenue = parse_revenue(payload.get("revenue_amount"))
        if revenue is not None and revenue < 0:
            errs.append(ValidationError("revenue_amount", "Revenue cannot be negative."))
    except ValueError as e:
        errs.append(ValidationError("revenue_amount", str(e)))

    accuracy = (payload.get("hypothesis_accuracy") or "unknown").strip().lower()
    if accuracy not in HYPOTHESIS_ACCURACY:
        errs.append(
            ValidationError("hypothesis_accuracy", f"Accuracy must be one of: {', '.join(HYPOTHESIS_ACCURACY)}.")
        )

    priority = (payload.get("learning_priority") or "medium").strip().lower()
    if priority not in LEARNING_PRIORITIES:
        errs.append(
            ValidationError("learning_priority", f"Priority must be one of: {', '.join(LEARNING_PRIORITIES)}.")
        )

    try:
        conf = _parse_confidence(payload.get("confidence_in_analysis"))
        if conf is not None and not 1 <= conf <= 10:
            errs.append(ValidationError("confidence_in_analysis", "Confidence must be between 1 and 10."))
    except ValueError as e:
        errs.append(ValidationError("confidence_in_analysis", str(e)))
    return errs


def _journey_context(client: Client, now: datetime) -> dict[str, Any]:
    viewed = [p for p in client.pages if (p.view_count or 0) > 0]
    last = max(viewed, key=lambda p: p.last_viewed_at or datetime.min, default=None)
    return {
        "journey_duration_days": max((now - client.created_at).days, 0) if client.created_at else None,
        "pages_viewed": len(viewed),
        "last_page_viewed": last.page_type if last else None,
    }


def _apply_payload(o: JourneyOutcome, payload: dict[str, Any]) -> None:
    o.journey_outcome = payload["journey_outcome"].strip().lower()
    o.revenue_amount = parse_revenue(payload.get("revenue_amount"))
    o.hypothesis_accuracy = (payload.get("hypothesis_accuracy") or "unknown").strip().lower()
    o.learning_priority = (payload.get("learning_priority") or "medium").strip().lower()
    o.confidence_in_analysis = _parse_confidence(payload.get("confidence_in_analysis"))
    for f in NOTE_FIELDS:
        setattr(o, f, (payload.get(f) or "").strip() or None)
    tags = parse_tags(payload.get("outcome_tags"))
    o.outcome_tags = ",".join(tags) if tags else None


def get_latest_outcome(client: Client) -> JourneyOutcome | None:
    return max(client.outcomes, key=lambda o: (o.recorded_at, o.id), default=None)


def list_outcomes(client: Client) -> list[JourneyOutcome]:
    return sorted(client.outcomes, key=lambda o: (o.recorded_at, o.id), reverse=True)


def _sync_client_summary(client: Client, *, exclude: JourneyOutcome | None = None) -> None:
    remaining = [o for o in client.outcomes if o is not exclude]
    latest = max(remaining, key=lambda o: (o.recorded_at, o.id or 0), default=None)
    if latest is None:
        client.journey_outcome = "pending"
        client.outcome_recorded_at = None
        client.outcome_notes = None
        client.revenue_amount = None
    else:
        client.journey_outcome = latest.journey_outcome
        client.outcome_recorded_at = latest.recorded_at
        client.outcome_notes = latest.outcome_notes
        client.revenue_amount = latest.revenue_amount
    client.updated_at = datetime.utcnow()


def record_outcome(s: Session, client: Client, payload: dict[str, Any], *, user: User) -> JourneyOutcome:
    errs = validate_outcome_payload(payload)
    if errs:
        raise ValueError(format_errors(errs))

    now = datetime.utcnow()
    o = JourneyOutcome(
        client=client,
        recorded_at=now,
        recorded_by=user.email if user else None,
        original_hypothesis=client.hypothesis,
        **_journey_context(client, now),
    )
    _apply_payload(o, payload)
    s.add(o)
    s.flush()
    _sync_client_summary(client)

    record_event(
        s,
        actor=user,
        action="outcome.record",
        entity_type="JourneyOutcome",
        entity_id=str(o.id),
        metadata={"client_id": client.id, "outcome": o.journey_outcome, "revenue": o.revenue_amount},
    )
    return o


def update_outcome(s: Session, o: JourneyOutcome, payload: dict[str, Any], *, user: User) -> JourneyOutcome:
    errs = validate_outcome_payload(payload)
    if errs:
        raise ValueError(format_errors(errs))

    before = snapshot(o, EDITABLE_FIELDS)
    _apply_payload(o, payload)
    s.flush()
    _sync_client_summary(o.client)
    record_event(
        s,
        actor=user,
        action="outcome.update",
        entity_type="JourneyOutcome",
        entity_id=str(o.id),
        metadata={"client_id": o.client_id, **diff_snapshots(before, snapshot(o, EDITABLE_FIELDS))},
    )
    return o


def delete_outcome(s: Session, o: JourneyOutcome, *, user: User) -> None:
    client = o.client
    record_event(
        s,
        actor=user,
        action="outcome.delete",
        entity_type="JourneyOutcome",
        entity_id=str(o.id),
        metadata={"client_id": client.id, "outcome": o.journey_outcome},
    )
    _sync_client_summary(client, exclude=o)
    client.outcomes.remove(o)
    s.delete(o)
    s.flush()


def get_outcome(client: Client, outcome_id: int) -> JourneyOutcome | None:
    for o in client.outcomes:
        if o.id == outcome_id:
            return o
    return None


def search_notes(
    s: Session,
    *,
    q: str | None = None,
    outcome: str | None = None,
    tag: str | None = None,
    priority: str | None = None,
    limit: int = 100,
) -> list[JourneyOutcome]:
    query = s.query(JourneyOutcome).join(Client, JourneyOutcome.client_id == Client.id)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                *[getattr(JourneyOutcome, f).ilike(like) for f in NOTE_FIELDS],
                JourneyOutcome.original_hypothesis.ilike(like),
                Client.company.ilike(like),
            )
        )
    if outcome:
        query = query.filter(JourneyOutcome.journey_outcome == outcome.strip().lower())
    if priority:
        query = query.filter(JourneyOutcome.learning_priority == priority.strip().lower())
    tag = (tag or "").strip().lower()
    if tag:
        # Tags are stored comma-joined without spaces; wrap in commas for an exact match.
        query = query.filter(("," + JourneyOutcome.outcome_tags + ",").like(f"%,{tag},%"))
    return query.order_by(JourneyOutcome.recorded_at.desc(), JourneyOutcome.id.desc()).limit(limit).all()
