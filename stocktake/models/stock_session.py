# stocktake/models/stock_session.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from stocktake.db.base import Base, BigIntPK, utcnow
from stocktake.models.enums import SessionStatus


class StockSession(Base):
    """盘点会话：动态与 zone 完成播报的作用域键。"""

    __tablename__ = "stock_sessions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=SessionStatus.LIVE.value)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_paused_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("status IN ('live','paused','completed')", name="ck_stock_sessions_status"),
    )

    def __repr__(self) -> str:
        return f"<StockSession id={self.id} org={self.organization_id!r} status={self.status}>"
