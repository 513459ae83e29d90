from __future__ import annotations

from flask import Blueprint, render_template, request

from app.genius.constants import CHANGE_TYPES, OUTCOMES, PAGE_LABELS
from app.genius.db import db_session
from app.genius.modules.analytics.service import (
    TIMEFRAME_DAYS,
    change_type_outcomes,
    conversion_funnel,
    conversion_summary,
    drop_off_by_page,
    hypothesis_accuracy_breakdown,
    outcome_breakdown,
    tag_frequency,
    timeframe_start,
)
from app.genius.rbac import require_permission

bp = Blueprint("analytics", __name__)


@bp.get("/analytics")
@require_permission("analytics.view")
def analytics_index():
    s = db_session()
    timeframe = (request.args.get("timeframe") or "").strip().lower()
    if timeframe not in TIMEFRAME_DAYS:
        timeframe = "all"
    since = timeframe_start(timeframe)
    return render_template(
        "dashboard/analytics.html",
        timeframe=timeframe,
        timeframes=("all", *TIMEFRAME_DAYS),
        summary=conversion_summary(s, since=since),
        funnel=conversion_funnel(s, since=since),
        breakdown=outcome_breakdown(s),
        accuracy=hypothesis_accuracy_breakdown(s),
        drop_off=drop_off_by_page(s),
        tags=tag_frequency(s, limit=20),
        change_types=change_type_outcomes(s),
        change_type_keys=CHANGE_TYPES,
        outcome_keys=OUTCOMES,
        page_labels=PAGE_LABELS,
    )
