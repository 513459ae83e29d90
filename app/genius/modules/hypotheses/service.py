"""
Content hypotheses: the "why" behind each page edit and its recorded result.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from app.genius.audit import record_event
from app.genius.constants import CHANGE_TYPES, HYPOTHESIS_STATUSES
from app.genius.modules.hypotheses.models import ContentHypothesis

if TYPE_CHECKING:
    from app.genius.models import User
    from app.genius.modules.journeys.models import ContentVersion, JourneyPage


def parse_confidence(value: int | str | None) -> int | None:
    """Blank -> None; otherwise an int in 1..10."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = int(value)
        except ValueError:
            raise ValueError("Confidence level must be a whole number from 1 to 10.")
    if not 1 <= int(value) <= 10:
        raise ValueError("Confidence level must be between 1 and 10.")
    return int(value)


def validate_hypothesis_fields(*, change_type: str, confidence_level: int | str | None) -> int | None:
    if change_type not in CHANGE_TYPES:
        raise ValueError(f"Invalid change type. Must be one of: {', '.join(CHANGE_TYPES)}")
    return parse_confidence(confidence_level)


def create_hypothesis(
    s: Session,
    *,
    page: "JourneyPage",
    version: "ContentVersion | None",
    hypothesis: str,
    change_type: str,
    user: "User | None",
    predicted_outcome: str | None = None,
    confidence_level: int | str | None = None,
    previous_content: str | None = None,
    new_content: str | None = None,
) -> ContentHypothesis:
    hypothesis = (hypothesis or "").strip()
    if not hypothesis:
        raise ValueError("Hypothesis text is required.")
    confidence = validate_hypothesis_fields(change_type=change_type, confidence_level=confidence_level)

    h = ContentHypothesis(
        page=page,
        version=version,
        hypothesis=hypothesis,
        change_type=change_type,
        predicted_outcome=(predicted_outcome or "").strip() or None,
        confidence_level=confidence,
        previous_content=previous_content,
        new_content=new_content,
        status="active",
        created_by=user.email if user else None,
        created_at=datetime.utcnow(),
    )
    s.add(h)
    s.flush()
    return h


def list_hypotheses_for_page(page: "JourneyPage") -> list[ContentHypothesis]:
    return sorted(page.hypotheses, key=lambda h: (h.created_at, h.id), reverse=True)


def get_hypothesis(page: "JourneyPage", hypothesis_id: int) -> ContentHypothesis | None:
    for h in page.hypotheses:
        if h.id == hypothesis_id:
            return h
    return None


def get_current_active_hypothesis(page: "JourneyPage") -> ContentHypothesis | None:
    for h in list_hypotheses_for_page(page):
        if h.status == "active":
            return h
    return None


def _merge_metadata(h: ContentHypothesis, extra: dict[str, Any]) -> None:
    data = json.loads(h.metadata_json) if h.metadata_json else {}
    data.update(extra)
    h.metadata_json = json.dumps(data, sort_keys=True)


def record_hypothesis_outcome(
    s: Session,
    h: ContentHypothesis,
    *,
    actual_outcome: str,
    validated: bool,
    user: "User",
) -> ContentHypothesis:
    if h.status != "active":
        raise ValueError(f"Only active hypotheses can be resolved (this one is {h.status}).")
    actual_outcome = (actual_outcome or "").strip()
    if not actual_outcome:
        raise ValueError("Describe the actual outcome.")

    h.status = "validated" if validated else "invalidated"
    h.actual_outcome = actual_outcome
    h.outcome_recorded_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="hypothesis.outcome",
        entity_type="ContentHypothesis",
        entity_id=str(h.id),
        metadata={"status": h.status, "journey_page_id": h.journey_page_id},
    )
    return h


def cancel_hypothesis(s: Session, h: ContentHypothesis, *, user: "User", reason: str | None = None) -> ContentHypothesis:
    if h.status != "active":
        raise ValueError(f"Only active hypotheses can be cancelled (this one is {h.status}).")
    h.status = "cancelled"
    _merge_metadata(
        h,
        {
            "cancelled_at": datetime.utcnow().isoformat(),
            "cancellation_reason": (reason or "").strip() or "User cancelled",
        },
    )
    record_event(
        s,
        actor=user,
        action="hypothesis.cancel",
        entity_type="ContentHypothesis",
        entity_id=str(h.id),
        reason=(reason or "").strip() or None,
    )
    return h


def hypothesis_analytics(page: "JourneyPage") -> dict[str, Any]:
    hyps = list(page.hypotheses)
    by_status = {status: 0 for status in HYPOTHESIS_STATUSES}
    by_change_type = {ct: 0 for ct in CHANGE_TYPES}
    confidences: list[int] = []
    for h in hyps:
        by_status[h.status] = by_status.get(h.status, 0) + 1
        by_change_type[h.change_type] = by_change_type.get(h.change_type, 0) + 1
        if h.confidence_level is not None:
            confidences.append(h.confidence_level)

    avg = round(sum(confidences) / len(confidences), 1) if confidences else 0
    return {
        "total_hypotheses": len(hyps),
        "active_hypotheses": by_status["active"],
        "validated_hypotheses": by_status["validated"],
        "invalidated_hypotheses": by_status["invalidated"],
        "cancelled_hypotheses": by_status["cancelled"],
        "average_confidence": avg,
        "change_type_distribution": by_change_type,
    }
