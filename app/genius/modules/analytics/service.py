"""
Descriptive outcome analytics. Counts and averages only.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.genius.constants import CHANGE_TYPES, DECIDED_OUTCOMES, OUTCOMES, PAGE_LABELS, PAGE_TYPES
from app.genius.modules.analytics.views import hypothesis_accuracy_analysis, journey_outcome_analytics
from app.genius.modules.clients.models import Client
from app.genius.modules.hypotheses.models import ContentHypothesis
from app.genius.modules.journeys.models import JourneyPage
from app.genius.modules.outcomes.models import JourneyOutcome


TIMEFRAME_DAYS = {"week": 7, "month": 30, "quarter": 90}


def timeframe_start(timeframe: str | None, *, now: datetime | None = None) -> datetime | None:
    """Start of a week/month/quarter window ending now; None (all time) for anything else."""
    days = TIMEFRAME_DAYS.get((timeframe or "").strip().lower())
    if days is None:
        return None
    return (now or datetime.utcnow()) - timedelta(days=days)


def _round(value: Any, places: int = 2) -> float | None:
    if value is None:
        return None
    return round(float(value), places)


def _latest_outcome_ids():
    return select(func.max(JourneyOutcome.id)).group_by(JourneyOutcome.client_id)


def outcome_breakdown(s: Session) -> list[dict[str, Any]]:
    v = journey_outcome_analytics
    rows = s.execute(select(v).order_by(v.c.outcome_count.desc(), v.c.journey_outcome)).mappings().all()
    return [
        {
            "journey_outcome": r["journey_outcome"],
            "outcome_count": int(r["outcome_count"] or 0),
            "avg_revenue": _round(r["avg_revenue"]),
            "total_revenue": _round(r["total_revenue"]) or 0.0,
            "avg_duration_days": _round(r["avg_duration_days"], 1),
            "avg_pages_viewed": _round(r["avg_pages_viewed"], 1),
            "accurate_hypotheses": int(r["accurate_hypotheses"] or 0),
            "inaccurate_hypotheses": int(r["inaccurate_hypotheses"] or 0),
            "avg_confidence": _round(r["avg_confidence"], 1),
        }
        for r in rows
    ]


def hypothesis_accuracy_breakdown(s: Session) -> list[dict[str, Any]]:
    v = hypothesis_accuracy_analysis
    rows = s.execute(select(v).order_by(v.c.hypothesis_accuracy, v.c.journey_outcome)).mappings().all()
    return [
        {
            "hypothesis_accuracy": r["hypothesis_accuracy"],
            "journey_outcome": r["journey_outcome"],
            "outcome_count": int(r["outcome_count"] or 0),
            "avg_revenue": _round(r["avg_revenue"]),
            "avg_duration_days": _round(r["avg_duration_days"], 1),
        }
        for r in rows
    ]


def conversion_summary(s: Session, *, since: datetime | None = None) -> dict[str, Any]:
    """Outcome counts over clients created since `since` (all clients when None)."""
    scope = [Client.created_at >= since] if since is not None else []
    counts = {o: 0 for o in OUTCOMES}
    rows = s.query(Client.journey_outcome, func.count(Client.id)).filter(*scope).group_by(Client.journey_outcome)
    for outcome, n in rows:
        counts[outcome] = int(n)

    decided = sum(counts[o] for o in DECIDED_OUTCOMES)
    paid_total, paid_avg = (
        s.query(func.coalesce(func.sum(Client.revenue_amount), 0), func.avg(Client.revenue_amount))
        .filter(Client.journey_outcome == "paid", *scope)
        .one()
    )
    return {
        "total_clients": sum(counts.values()),
        "by_outcome": counts,
        "decided": decided,
        "conversion_rate": round(counts["paid"] / decided * 100, 1) if decided else 0.0,
        "total_revenue": _round(paid_total) or 0.0,
        "avg_revenue": _round(paid_avg),
    }


def drop_off_by_page(s: Session) -> dict[str, int]:
    """Where ghosted/declined clients were last seen (latest outcome only)."""
    out = {pt: 0 for pt in PAGE_TYPES}
    rows = (
        s.query(JourneyOutcome.last_page_viewed, func.count(JourneyOutcome.id))
        .filter(JourneyOutcome.id.in_(_latest_outcome_ids()))
        .filter(JourneyOutcome.journey_outcome.in_(("ghosted", "declined")))
        .group_by(JourneyOutcome.last_page_viewed)
        .all()
    )
    for page_type, n in rows:
        out[page_type or "none"] = out.get(page_type or "none", 0) + int(n)
    return out


def tag_frequency(s: Session, limit: int = 20) -> list[tuple[str, int]]:
    counts: dict[str, int] = {}
    for (raw,) in s.query(JourneyOutcome.outcome_tags).filter(JourneyOutcome.outcome_tags.isnot(None)):
        for t in raw.split(","):
            if t:
                counts[t] = counts.get(t, 0) + 1
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]


def change_type_outcomes(s: Session) -> dict[str, dict[str, int]]:
    """Hypothesis change types against the owning client's current outcome."""
    table: dict[str, dict[str, int]] = {ct: {o: 0 for o in OUTCOMES} for ct in CHANGE_TYPES}
    rows = (
        s.query(ContentHypothesis.change_type, Client.journey_outcome, func.count(ContentHypothesis.id))
        .join(JourneyPage, ContentHypothesis.journey_page_id == JourneyPage.id)
        .join(Client, JourneyPage.client_id == Client.id)
        .group_by(ContentHypothesis.change_type, Client.journey_outcome)
        .all()
    )
    for change_type, outcome, n in rows:
        table.setdefault(change_type, {o: 0 for o in OUTCOMES})[outcome] = int(n)
    return table



def conversion_funnel(s: Session, *, since: datetime | None = None) -> list[dict[str, Any]]:
    """
    Step-by-step journey funnel over pages created since `since`.

    The first step's visitors are every journey that has that page; each later
    step's visitors are the previous step's completions. Rates are percentages.
    """
    query = s.query(JourneyPage.page_type, JourneyPage.status, func.count(JourneyPage.id))
    if since is not None:
        query = query.filter(JourneyPage.created_at >= since)
    totals: dict[str, int] = {}
    completed: dict[str, int] = {}
    for page_type, status, n in query.group_by(JourneyPage.page_type, JourneyPage.status):
        totals[page_type] = totals.get(page_type, 0) + int(n)
        if status == "completed":
            completed[page_type] = completed.get(page_type, 0) + int(n)

    steps: list[dict[str, Any]] = []
    visitors = totals.get(PAGE_TYPES[0], 0)
    for page_type in PAGE_TYPES:
        conversions = completed.get(page_type, 0)
        rate = round(conversions / visitors * 100, 2) if visitors else 0.0
        steps.append(
            {
                "page_type": page_type,
                "step": PAGE_LABELS[page_type],
                "visitors": visitors,
                "conversions": conversions,
                "conversion_rate": rate,
                "drop_off_rate": round(100 - rate, 2) if visitors else 0.0,
            }
        )
        visitors = conversions
    return steps
