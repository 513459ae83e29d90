"""
Clients module.

A client is one onboarding prospect: a company contact who receives a G-token
link to their four journey pages. Outcome summary columns mirror the latest
JourneyOutcome row (kept in sync by the outcomes service).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.genius.models import Base


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_status", "status"),
        Index("idx_clients_created_at", "created_at"),
        Index("idx_clients_journey_outcome", "journey_outcome"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    company: Mapped[str] = mapped_column(Text, nullable=False)
    contact: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    position: Mapped[str] = mapped_column(Text, nullable=False)
    salary: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo: Mapped[str | None] = mapped_column(Text, nullable=True)

    hypothesis: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)

    # pending -> activated
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    journey_outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    outcome_recorded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    revenue_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    pages: Mapped[list["JourneyPage"]] = relationship(  # noqa: F821
        "JourneyPage",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="JourneyPage.page_order",
        lazy="selectin",
    )
    outcomes: Mapped[list["JourneyOutcome"]] = relationship(  # noqa: F821
        "JourneyOutcome",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="JourneyOutcome.id.desc()",
        lazy="selectin",
    )
