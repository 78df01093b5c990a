from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tableflow.infrastructure.db.models.base import Base


class IssueModel(Base):
    __tablename__ = "issues"
    __table_args__ = (
        Index("ix_issues_order_status", "order_id", "status"),
        Index("ix_issues_status_created_at", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    # scope is one of "ticket", "stream", "order"; ticket_id/stream are filled accordingly.
    scope: Mapped[str] = mapped_column(String(10), nullable=False)
    ticket_id: Mapped[str | None] = mapped_column(
        String(50),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=True,
    )
    stream: Mapped[str | None] = mapped_column(String(20), nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(30), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
