from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.genius.models import Base


class JourneyOutcome(Base):
    """
    One recorded outcome for a client's journey. Rows are history; the newest
    one per client is mirrored onto the Client summary columns.
    """

    __tablename__ = "journey_outcomes"
    __table_args__ = (
        Index("idx_journey_outcomes_client", "client_id", "recorded_at"),
        Index("idx_journey_outcomes_outcome", "journey_outcome"),
        Index("idx_journey_outcomes_accuracy", "hypothesis_accuracy"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)

    journey_outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    revenue_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    recorded_by: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Journey context at the time of recording
    journey_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pages_viewed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_page_viewed: Mapped[str | None] = mapped_column(String(20), nullable=True)

    original_hypothesis: Mapped[str | None] = mapped_column(Text, nullable=True)
    hypothesis_accuracy: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    conversion_factors: Mapped[str | None] = mapped_column(Text, nullable=True)
    missed_opportunities: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_time_improvements: Mapped[str | None] = mapped_column(Text, nullable=True)
    timeline_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    behavior_observations: Mapped[str | None] = mapped_column(Text, nullable=True)
    revenue_intelligence: Mapped[str | None] = mapped_column(Text, nullable=True)
    competitive_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    actionable_insights: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_in_analysis: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..10

    outcome_tags: Mapped[str | None] = mapped_column(Text, nullable=True)  # "tag-a,tag-b"
    learning_priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    client = relationship("Client", back_populates="outcomes", lazy="selectin")

    @property
    def tags(self) -> list[str]:
        return [t for t in (self.outcome_tags or "").split(",") if t]
