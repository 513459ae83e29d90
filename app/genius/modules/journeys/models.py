from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.genius.models import Base


class JourneyPage(Base):
    __tablename__ = "journey_pages"
    __table_args__ = (
        UniqueConstraint("client_id", "page_type", name="uq_journey_pages_client_page_type"),
        UniqueConstraint("client_id", "page_order", name="uq_journey_pages_client_order"),
        Index("idx_journey_pages_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)

    page_type: Mapped[str] = mapped_column(String(20), nullable=False)  # activation|agreement|confirmation|processing
    page_order: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..4

    # Mirrors the current ContentVersion.
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    # pending -> active -> completed (or skipped)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    client = relationship("Client", back_populates="pages", lazy="selectin")
    versions: Mapped[list["ContentVersion"]] = relationship(
        "ContentVersion",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="ContentVersion.version_number.desc()",
        lazy="selectin",
    )
    hypotheses: Mapped[list["ContentHypothesis"]] = relationship(  # noqa: F821
        "ContentHypothesis",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="ContentHypothesis.id.desc()",
        lazy="selectin",
    )


class ContentVersion(Base):
    __tablename__ = "journey_content_versions"
    __table_args__ = (
        UniqueConstraint("page_id", "version_number", name="uq_content_versions_page_version"),
        # At most one current version per page.
        Index(
            "uq_content_versions_current",
            "page_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("journey_pages.id", ondelete="CASCADE"), nullable=False)

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    hypothesis: Mapped[str] = mapped_column(Text, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    page: Mapped[JourneyPage] = relationship("JourneyPage", back_populates="versions", lazy="selectin")
    created_by = relationship("User", foreign_keys=[created_by_user_id], lazy="selectin")
