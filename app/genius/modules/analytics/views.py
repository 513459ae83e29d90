"""
Reporting views over each client's latest journey outcome.

The SELECTs are shared by the Alembic migration and the metadata DDL hooks
(so `Base.metadata.create_all` in tests builds them too). The view Table
objects live on their own MetaData so create_all never tries to CREATE TABLE
them.
"""

from __future__ import annotations

from sqlalchemy import Column, DDL, Integer, MetaData, Numeric, String, Table, event

from app.genius.models import Base

_LATEST = "jo.id IN (SELECT MAX(id) FROM journey_outcomes GROUP BY client_id)"

JOURNEY_OUTCOME_ANALYTICS_SQL = f"""
SELECT
    jo.journey_outcome AS journey_outcome,
    COUNT(*) AS outcome_count,
    AVG(jo.revenue_amount) AS avg_revenue,
    COALESCE(SUM(jo.revenue_amount), 0) AS total_revenue,
    AVG(jo.journey_duration_days) AS avg_duration_days,
    AVG(jo.pages_viewed) AS avg_pages_viewed,
    SUM(CASE WHEN jo.hypothesis_accuracy = 'accurate' THEN 1 ELSE 0 END) AS accurate_hypotheses,
    SUM(CASE WHEN jo.hypothesis_accuracy = 'inaccurate' THEN 1 ELSE 0 END) AS inaccurate_hypotheses,
    AVG(jo.confidence_in_analysis) AS avg_confidence
FROM journey_outcomes jo
WHERE {_LATEST}
GROUP BY jo.journey_outcome
"""

HYPOTHESIS_ACCURACY_ANALYSIS_SQL = f"""
SELECT
    jo.hypothesis_accuracy AS hypothesis_accuracy,
    jo.journey_outcome AS journey_outcome,
    COUNT(*) AS outcome_count,
    AVG(jo.revenue_amount) AS avg_revenue,
    AVG(jo.journey_duration_days) AS avg_duration_days
FROM journey_outcomes jo
WHERE {_LATEST}
  AND jo.hypothesis_accuracy <> 'unknown'
GROUP BY jo.hypothesis_accuracy, jo.journey_outcome
"""

VIEWS: tuple[tuple[str, str], ...] = (
    ("journey_outcome_analytics", JOURNEY_OUTCOME_ANALYTICS_SQL),
    ("hypothesis_accuracy_analysis", HYPOTHESIS_ACCURACY_ANALYSIS_SQL),
)

view_metadata = MetaData()

journey_outcome_analytics = Table(
    "journey_outcome_analytics",
    view_metadata,
    Column("journey_outcome", String(20)),
    Column("outcome_count", Integer),
    Column("avg_revenue", Numeric),
    Column("total_revenue", Numeric),
    Column("avg_duration_days", Numeric),
    Column("avg_pages_viewed", Numeric),
    Column("accurate_hypotheses", Integer),
    Column("inaccurate_hypotheses", Integer),
    Column("avg_confidence", Numeric),
)

hypothesis_accuracy_analysis = Table(
    "hypothesis_accuracy_analysis",
    view_metadata,
    Column("hypothesis_accuracy", String(20)),
    Column("journey_outcome", String(20)),
    Column("outcome_count", Integer),
    Column("avg_revenue", Numeric),
    Column("avg_duration_days", Numeric),
)


def create_view_statements() -> list[str]:
    out: list[str] = []
    for name, sql in VIEWS:
        out.append(f"DROP VIEW IF EXISTS {name}")
        out.append(f"CREATE VIEW {name} AS {sql}")
    return out


def drop_view_statements() -> list[str]:
    return [f"DROP VIEW IF EXISTS {name}" for name, _ in VIEWS]


for _stmt in create_view_statements():
    event.listen(Base.metadata, "after_create", DDL(_stmt))
for _stmt in drop_view_statements():
    event.listen(Base.metadata, "before_drop", DDL(_stmt))
