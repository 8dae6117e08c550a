# stocktake/models/stock_issue.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stocktake.db.base import Base, BigIntPK, utcnow
from stocktake.models.enums import IssuePriority, IssueStatus


class StockIssue(Base):
    """
    盘点问题单：盘点中发现的破损、错位、差异待查等。
    可挂在某个商品（含 variance 行）或某个 zone 上；会话 / 商品被删时保留问题单。
    """

    __tablename__ = "stock_issues"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("stock_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=IssueStatus.OPEN.value)
    priority: Mapped[str] = mapped_column(Text, nullable=False, default=IssuePriority.MEDIUM.value)
    classification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    zone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    item_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("stock_items.id", ondelete="SET NULL"),
        nullable=True,
    )

    reporter_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reporter_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assignee_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    comments: Mapped[List["StockIssueComment"]] = relationship(
        back_populates="issue",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StockIssueComment.id",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('open','in_progress','resolved','closed')",
            name="ck_stock_issues_status",
        ),
        CheckConstraint(
            "priority IN ('low','medium','high','critical')",
            name="ck_stock_issues_priority",
        ),
        Index("ix_stock_issues_org_status", "organization_id", "status"),
        Index("ix_stock_issues_org_time", "organization_id", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return f"<StockIssue id={self.id} status={self.status} priority={self.priority} item={self.item_id}>"


class StockIssueComment(Base):
    __tablename__ = "stock_issue_comments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("stock_issues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    issue: Mapped[StockIssue] = relationship(back_populates="comments")
