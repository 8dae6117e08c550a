# stocktake/services/issue_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.errors import InvalidInput, InvalidState, NotFound, Unauthorized
from stocktake.db.base import utcnow
from stocktake.models.enums import CLOSED_ISSUE_STATUSES, IssuePriority, IssueStatus, ItemStatus
from stocktake.models.stock_issue import StockIssue, StockIssueComment
from stocktake.services.count_service import load_item
from stocktake.services.identity import IdentityProvider, ProfileIdentityProvider
from stocktake.services.session_service import SessionService

log = logging.getLogger("stocktake.issue")

ISSUE_PAGE_DEFAULT = 50
ISSUE_PAGE_MAX = 100

E = TypeVar("E", bound=Enum)


def _coerce(enum_cls: Type[E], value: str, label: str) -> E:
    try:
        return enum_cls((value or "").strip())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"invalid {label}: {value!r}", context={label: value, "allowed": allowed}) from None


def _clean(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip()
    return v or None


@dataclass
class IssuePage:
    items: List[StockIssue] = field(default_factory=list)
    total: int = 0


@dataclass
class IssueBulkResult:
    updated_count: int = 0
    missing_ids: List[int] = field(default_factory=list)


class IssueService:
    """
    盘点问题单：
    - create / raise_for_variance：新建（可挂商品、zone、会话）
    - list_issues / get：组织内查询，跨组织一律 NotFound
    - update / bulk_update：状态、优先级、负责人、分类、zone
    - add_comment / list_comments：按时间正序的讨论串

    状态进入 resolved / closed 时打 resolved_at，重新打开时清空。
    只 flush，不 commit。
    """

    def __init__(self, identity: Optional[IdentityProvider] = None) -> None:
        self.identity = identity or ProfileIdentityProvider()

    async def create(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        title: str,
        reporter_id: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        classification: Optional[str] = None,
        category: Optional[str] = None,
        zone: Optional[str] = None,
        item_id: Optional[int] = None,
        session_id: Optional[int] = None,
    ) -> StockIssue:
        if not organization_id:
            raise Unauthorized("organization required")
        clean_title = (title or "").strip()
        if not clean_title:
            raise InvalidInput("issue title is required")
        prio = _coerce(IssuePriority, priority, "priority") if priority else IssuePriority.MEDIUM

        if session_id is not None:
            await SessionService().get(session, organization_id=organization_id, session_id=session_id)

        zone = _clean(zone)
        if item_id is not None:
            item = await load_item(session, organization_id=organization_id, item_id=item_id)
            zone = zone or item.location

        reporter_id = _clean(reporter_id)
        reporter_name = await self.identity.display_name(session, reporter_id) if reporter_id else None

        now = utcnow()
        issue = StockIssue(
            organization_id=organization_id,
            session_id=session_id,
            title=clean_title,
            description=_clean(description),
            status=IssueStatus.OPEN.value,
            priority=prio.value,
            classification=_clean(classification),
            category=_clean(category),
            zone=zone,
            item_id=item_id,
            reporter_id=reporter_id,
            reporter_name=reporter_name,
            created_at=now,
            updated_at=now,
            comments=[],
        )
        session.add(issue)
        await session.flush()
        log.info(
            "issue #%s opened: org=%s item=%s zone=%s priority=%s",
            issue.id,
            organization_id,
            item_id,
            zone,
            issue.priority,
        )
        return issue

    async def raise_for_variance(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        item_id: int,
        reporter_id: Optional[str] = None,
        session_id: Optional[int] = None,
        description: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> StockIssue:
        """给一条差异行开问题单：标题带商品名与差异量，zone 取商品库位。"""
        if not organization_id:
            raise Unauthorized("organization required")
        item = await load_item(session, organization_id=organization_id, item_id=item_id)
        if item.status != ItemStatus.VARIANCE.value:
            raise InvalidState(
                "only variance items can raise a variance issue",
                context={"item_id": item.id, "status": item.status},
            )
        sign = "+" if (item.variance or 0) > 0 else ""
        return await self.create(
            session,
            organization_id=organization_id,
            title=f"Variance on {item.name} ({sign}{item.variance})",
            reporter_id=reporter_id,
            description=description,
            priority=priority,
            classification="variance",
            category=item.category,
            item_id=item.id,
            session_id=session_id,
        )

    async def get(self, session: AsyncSession, *, organization_id: str, issue_id: int) -> StockIssue:
        issue = await session.get(StockIssue, issue_id)
        if issue is None or issue.organization_id != organization_id:
            raise NotFound(f"issue {issue_id} not found")
        return issue

    async def list_issues(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        session_id: Optional[int] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        classification: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> IssuePage:
        conds = [StockIssue.organization_id == organization_id]
        if session_id is not None:
            conds.append(StockIssue.session_id == session_id)
        if status:
            conds.append(StockIssue.status == _coerce(IssueStatus, status, "status").value)
        if priority:
            conds.append(StockIssue.priority == _coerce(IssuePriority, priority, "priority").value)
        if classification:
            conds.append(StockIssue.classification == classification.strip())
        needle = (search or "").strip().lower()
        if needle:
            conds.append(
                or_(
                    func.lower(StockIssue.title).contains(needle, autoescape=True),
                    func.lower(StockIssue.description).contains(needle, autoescape=True),
                )
            )

        n = ISSUE_PAGE_DEFAULT if limit is None else int(limit)
        n = max(1, min(n, ISSUE_PAGE_MAX))
        offset = max(0, int(offset or 0))

        total = await session.scalar(select(func.count(StockIssue.id)).where(*conds))
        rows = (
            await session.execute(
                select(StockIssue)
                .where(*conds)
                .order_by(StockIssue.created_at.desc(), StockIssue.id.desc())
                .limit(n)
                .offset(offset)
            )
        ).scalars().all()
        return IssuePage(items=list(rows), total=int(total or 0))

    def _apply(
        self,
        issue: StockIssue,
        *,
        status: Optional[IssueStatus] = None,
        priority: Optional[IssuePriority] = None,
        assignee_id: Optional[str] = None,
        assignee_name: Optional[str] = None,
        classification: Optional[str] = None,
        zone: Optional[str] = None,
    ) -> None:
        if status is not None:
            issue.status = status.value
            issue.resolved_at = utcnow() if status.value in CLOSED_ISSUE_STATUSES else None
        if priority is not None:
            issue.priority = priority.value
        if assignee_id is not None:
            # "" = 取消指派
            issue.assignee_id = assignee_id or None
            issue.assignee_name = assignee_name if assignee_id else None
        if classification is not None:
            issue.classification = classification or None
        if zone is not None:
            issue.zone = zone or None
        issue.updated_at = utcnow()

    async def update(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        issue_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_id: Optional[str] = None,
        classification: Optional[str] = None,
        zone: Optional[str] = None,
    ) -> StockIssue:
        issue = await self.get(session, organization_id=organization_id, issue_id=issue_id)
        st = _coerce(IssueStatus, status, "status") if status is not None else None
        pr = _coerce(IssuePriority, priority, "priority") if priority is not None else None

        if all(v is None for v in (st, pr, assignee_id, classification, zone)):
            return issue

        assignee = assignee_id.strip() if assignee_id is not None else None
        name = await self.identity.display_name(session, assignee) if assignee else None
        self._apply(
            issue,
            status=st,
            priority=pr,
            assignee_id=assignee,
            assignee_name=name,
            classification=classification.strip() if classification is not None else None,
            zone=zone.strip() if zone is not None else None,
        )
        await session.flush()
        log.info(
            "issue #%s updated: status=%s priority=%s assignee=%s",
            issue.id,
            issue.status,
            issue.priority,
            issue.assignee_id,
        )
        return issue

    async def bulk_update(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        issue_ids: Iterable[int],
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_id: Optional[str] = None,
        zone: Optional[str] = None,
    ) -> IssueBulkResult:
        ids = list(dict.fromkeys(int(i) for i in issue_ids or []))
        if not ids:
            raise InvalidInput("issue ids are required")
        if all(v is None for v in (status, priority, assignee_id, zone)):
            raise InvalidInput("nothing to update: give status, priority, assignee_id or zone")
        st = _coerce(IssueStatus, status, "status") if status is not None else None
        pr = _coerce(IssuePriority, priority, "priority") if priority is not None else None

        rows = (
            await session.execute(
                select(StockIssue)
                .where(StockIssue.organization_id == organization_id)
                .where(StockIssue.id.in_(ids))
                .order_by(StockIssue.id)
            )
        ).scalars().all()
        if not rows:
            raise NotFound("no matching issues", context={"issue_ids": ids})

        assignee = assignee_id.strip() if assignee_id is not None else None
        name = await self.identity.display_name(session, assignee) if assignee else None
        for issue in rows:
            self._apply(
                issue,
                status=st,
                priority=pr,
                assignee_id=assignee,
                assignee_name=name,
                zone=zone.strip() if zone is not None else None,
            )
        await session.flush()

        found = {i.id for i in rows}
        result = IssueBulkResult(updated_count=len(rows), missing_ids=[i for i in ids if i not in found])
        log.info("issue bulk update: updated=%s missing=%s", result.updated_count, result.missing_ids)
        return result

    async def add_comment(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        issue_id: int,
        user_id: Optional[str],
        body: str,
    ) -> StockIssueComment:
        text = (body or "").strip()
        if not text:
            raise InvalidInput("comment body is required")
        issue = await self.get(session, organization_id=organization_id, issue_id=issue_id)

        uid = _clean(user_id)
        comment = StockIssueComment(
            user_id=uid,
            user_name=await self.identity.display_name(session, uid) if uid else None,
            body=text,
            created_at=utcnow(),
        )
        issue.comments.append(comment)
        issue.updated_at = utcnow()
        await session.flush()
        return comment

    async def list_comments(
        self, session: AsyncSession, *, organization_id: str, issue_id: int
    ) -> List[StockIssueComment]:
        issue = await self.get(session, organization_id=organization_id, issue_id=issue_id)
        return list(issue.comments)
