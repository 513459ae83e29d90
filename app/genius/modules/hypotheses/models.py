from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.genius.models import Base


class ContentHypothesis(Base):
    """
    Why an admin changed a page, captured before the change goes live,
    and (later) whether the change did what was expected.
    """

    __tablename__ = "content_hypotheses"
    __table_args__ = (
        Index("idx_content_hypotheses_page", "journey_page_id", "created_at"),
        Index("idx_content_hypotheses_status", "status"),
        Index("idx_content_hypotheses_change_type", "change_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    journey_page_id: Mapped[int] = mapped_column(ForeignKey("journey_pages.id", ondelete="CASCADE"), nullable=False)
    content_version_id: Mapped[int | None] = mapped_column(
        ForeignKey("journey_content_versions.id", ondelete="SET NULL"),
        nullable=True,
    )

    hypothesis: Mapped[str] = mapped_column(Text, nullable=False)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)  # content|title|both|structure
    predicted_outcome: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_level: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..10

    previous_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    # active -> validated | invalidated | cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    outcome_recorded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    actual_outcome: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    page = relationship("JourneyPage", back_populates="hypotheses", lazy="selectin")
    version = relationship("ContentVersion", lazy="selectin")
