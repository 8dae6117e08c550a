# stocktake/api/routers/stock.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.api.deps import get_org_id, get_session, require_org_id
from stocktake.core.tx import tx_commit
from stocktake.models.stock_issue import StockIssue
from stocktake.models.stock_session import StockSession
from stocktake.schemas.stock import (
    ActivityView,
    BarcodeValidateIn,
    BarcodeValidateOut,
    BulkOut,
    BulkUpdateIn,
    BulkVerifyIn,
    CommentIn,
    CommentView,
    CounterStatView,
    CountIn,
    IssueBulkIn,
    IssueBulkOut,
    IssueCreateIn,
    IssueListOut,
    IssuePatchIn,
    IssueView,
    ItemView,
    LookupOut,
    SessionCreateIn,
    SessionPatchIn,
    SessionView,
    VarianceIssueIn,
    VerifyIn,
    ZoneAssignIn,
    ZoneAssignmentView,
    ZoneView,
)
from stocktake.services.activity_ledger import ActivityLedger, format_relative
from stocktake.services.barcode import BarcodeInvalid, validate_barcode
from stocktake.services.count_service import CountService
from stocktake.services.issue_service import IssueService
from stocktake.services.item_lookup import ItemLookup
from stocktake.services.session_service import SessionService
from stocktake.services.team_stats import TeamStats, list_counters
from stocktake.services.verify_service import BulkResult, VerifyService
from stocktake.services.zone_assignment import AssignmentIn, ZoneAssignmentService
from stocktake.services.zone_completion import ZoneCompletionDetector

router = APIRouter(prefix="/stock", tags=["stock"])


def _bulk_out(r: BulkResult) -> BulkOut:
    return BulkOut(updated_count=r.updated_count, skipped_ids=r.skipped_ids, missing_ids=r.missing_ids)


def _issue_view(issue: StockIssue) -> IssueView:
    v = IssueView.model_validate(issue)
    v.comment_count = len(issue.comments)
    return v


async def _session_view(session: AsyncSession, ss: StockSession) -> SessionView:
    counts = await SessionService().counts(session, organization_id=ss.organization_id)
    return SessionView(
        id=ss.id,
        name=ss.name,
        status=ss.status,
        started_at=ss.started_at,
        paused_at=ss.paused_at,
        total_paused_seconds=ss.total_paused_seconds or 0,
        location=ss.location,
        total_items=ss.total_items,
        counted_items=counts.counted,
        variance_items=counts.variance,
        verified_items=counts.verified,
    )


# ==========================
# 计数 / 核准
# ==========================


@router.post("/items/{item_id}/count", response_model=ItemView, status_code=status.HTTP_200_OK)
async def submit_count(
    item_id: int,
    body: CountIn,
    org_id: Optional[str] = Depends(get_org_id),
    session: AsyncSession = Depends(get_session),
) -> ItemView:
    """提交实盘数量：算差异、改状态、写动态、判定 zone 完成（同一事务）。"""
    async with tx_commit(session):
        item = await CountService().submit_count(
            session,
            organization_id=org_id,
            session_id=body.session_id,
            item_id=item_id,
            counted_qty=body.counted_qty,
            actor_id=body.actor_id,
            captured_barcode=body.captured_barcode,
            barcode_format=body.barcode_format,
        )
    return ItemView.model_validate(item)


@router.post("/items/{item_id}/verify", response_model=ItemView)
async def verify_item(
    item_id: int,
    body: VerifyIn,
    org_id: Optional[str] = Depends(get_org_id),
    session: AsyncSession = Depends(get_session),
) -> ItemView:
    async with tx_commit(session):
        item = await VerifyService().verify(
            session,
            organization_id=org_id,
            session_id=body.session_id,
            item_id=item_id,
            actor_id=body.actor_id,
        )
    return ItemView.model_validate(item)


@router.post("/items/verify", response_model=BulkOut)
async def verify_items_bulk(
    body: BulkVerifyIn,
    org_id: Optional[str] = Depends(get_org_id),
    session: AsyncSession = Depends(get_session),
) -> BulkOut:
    """批量核准：非 variance 的商品软跳过，看 updated_count / skipped_ids 判断部分生效。"""
    async with tx_commit(session):
        r = await VerifyService().bulk_update(
            session,
            organization_id=org_id,
            session_id=body.session_id,
            item_ids=body.item_ids,
            actor_id=body.actor_id,
            verified=True,
        )
    return _bulk_out(r)


@router.patch("/items/bulk", response_model=BulkOut)
async def update_items_bulk(
    body: BulkUpdateIn,
    org_id: Optional[str] = Depends(get_org_id),
    session: AsyncSession = Depends(get_session),
) -> BulkOut:
    async with tx_commit(session):
        r = await VerifyService().bulk_update(
            session,
            organization_id=org_id,
            session_id=body.session_id,
            item_ids=body.item_ids,
            actor_id=body.actor_id,
            verified=body.verified,
            location=body.location,
        )
    return _bulk_out(r)


# ==========================
# 查找 / 条码
# ==========================


@router.get("/items/lookup", response_model=LookupOut)
async def lookup_items(
    q: str = Query(..., min_length=1),
    format: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> LookupOut:
    r = await ItemLookup().lookup(session, organization_id=org_id, query=q, barcode_format=format, limit=limit)
    return LookupOut(query=r.query, exact=r.exact, items=[ItemView.model_validate(it) for it in r.matches])


@router.post("/barcodes/validate", response_model=BarcodeValidateOut)
async def validate_barcode_route(body: BarcodeValidateIn) -> BarcodeValidateOut:
    r = validate_barcode(body.code, body.format)
    if isinstance(r, BarcodeInvalid):
        return BarcodeValidateOut(
            valid=False, kind=r.kind, reason=r.reason, expected_check_digit=r.expected_check_digit
        )
    return BarcodeValidateOut(valid=True, normalized=r.normalized, kind=r.kind)


# ==========================
# 动态 / zone
# ==========================


@router.get("/activity", response_model=List[ActivityView])
async def list_activity(
    limit: Optional[int] = Query(None, ge=1),
    session_id: Optional[int] = Query(None),
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[ActivityView]:
    rows = await ActivityLedger().list_recent(session, organization_id=org_id, limit=limit, session_id=session_id)
    return [
        ActivityView(
            id=r.id,
            type=r.type,
            message=r.message,
            user=r.user_name or r.user_id or "Unknown",
            zone=r.zone,
            item_id=r.item_id,
            session_id=r.session_id,
            created_at=r.created_at,
            timestamp=format_relative(r.created_at),
        )
        for r in rows
    ]


@router.get("/zones", response_model=List[ZoneView])
async def list_zones(
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[ZoneView]:
    rows = await ZoneCompletionDetector().zone_progress(session, organization_id=org_id)
    return [
        ZoneView(
            zone_code=z.zone_code,
            name=z.name,
            total_items=z.total_items,
            counted_items=z.counted_items,
            variances=z.variances,
            assignee_id=z.assignee_id,
        )
        for z in rows
    ]


@router.patch("/zones/assign", response_model=List[ZoneAssignmentView])
async def assign_zones(
    body: ZoneAssignIn,
    org_id: Optional[str] = Depends(get_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[ZoneAssignmentView]:
    async with tx_commit(session):
        rows = await ZoneAssignmentService().assign(
            session,
            organization_id=org_id,
            session_id=body.session_id,
            assignments=[AssignmentIn(zone_code=a.zone_code, user_id=a.user_id) for a in body.assignments],
        )
    return [ZoneAssignmentView.model_validate(a) for a in rows]


# ==========================
# 会话
# ==========================


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_session(
    body: SessionCreateIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> SessionView:
    async with tx_commit(session):
        ss = await SessionService().start(session, organization_id=org_id, name=body.name, location=body.location)
    return await _session_view(session, ss)


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session_view(
    session_id: int,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> SessionView:
    ss = await SessionService().get(session, organization_id=org_id, session_id=session_id)
    return await _session_view(session, ss)


@router.patch("/sessions/{session_id}", response_model=SessionView)
async def patch_session(
    session_id: int,
    body: SessionPatchIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> SessionView:
    async with tx_commit(session):
        ss = await SessionService().set_status(
            session, organization_id=org_id, session_id=session_id, status=body.status
        )
    return await _session_view(session, ss)


# ==========================
# 问题单
# ==========================


@router.get("/issues", response_model=IssueListOut)
async def list_issues(
    session_id: Optional[int] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    classification: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueListOut:
    page = await IssueService().list_issues(
        session,
        organization_id=org_id,
        session_id=session_id,
        status=status_,
        priority=priority,
        classification=classification,
        search=search,
        limit=limit,
        offset=offset,
    )
    return IssueListOut(issues=[_issue_view(i) for i in page.items], total=page.total)


@router.post("/issues", response_model=IssueView, status_code=status.HTTP_201_CREATED)
async def create_issue(
    body: IssueCreateIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueView:
    async with tx_commit(session):
        issue = await IssueService().create(
            session,
            organization_id=org_id,
            title=body.title,
            reporter_id=body.reporter_id,
            description=body.description,
            priority=body.priority,
            classification=body.classification,
            category=body.category,
            zone=body.zone,
            item_id=body.item_id,
            session_id=body.session_id,
        )
    return _issue_view(issue)


@router.post("/items/{item_id}/issues", response_model=IssueView, status_code=status.HTTP_201_CREATED)
async def raise_variance_issue(
    item_id: int,
    body: VarianceIssueIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueView:
    """给 variance 行开问题单（其他状态 409）。"""
    async with tx_commit(session):
        issue = await IssueService().raise_for_variance(
            session,
            organization_id=org_id,
            item_id=item_id,
            reporter_id=body.reporter_id,
            session_id=body.session_id,
            description=body.description,
            priority=body.priority,
        )
    return _issue_view(issue)


# 必须在 /issues/{issue_id} 之前注册
@router.patch("/issues/bulk", response_model=IssueBulkOut)
async def update_issues_bulk(
    body: IssueBulkIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueBulkOut:
    async with tx_commit(session):
        r = await IssueService().bulk_update(
            session,
            organization_id=org_id,
            issue_ids=body.ids,
            status=body.status,
            priority=body.priority,
            assignee_id=body.assignee_id,
            zone=body.zone,
        )
    return IssueBulkOut(updated_count=r.updated_count, missing_ids=r.missing_ids)


@router.get("/issues/{issue_id}", response_model=IssueView)
async def get_issue(
    issue_id: int,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueView:
    issue = await IssueService().get(session, organization_id=org_id, issue_id=issue_id)
    return _issue_view(issue)


@router.patch("/issues/{issue_id}", response_model=IssueView)
async def patch_issue(
    issue_id: int,
    body: IssuePatchIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> IssueView:
    async with tx_commit(session):
        issue = await IssueService().update(
            session,
            organization_id=org_id,
            issue_id=issue_id,
            status=body.status,
            priority=body.priority,
            assignee_id=body.assignee_id,
            classification=body.classification,
            zone=body.zone,
        )
    return _issue_view(issue)


@router.get("/issues/{issue_id}/comments", response_model=List[CommentView])
async def list_issue_comments(
    issue_id: int,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[CommentView]:
    rows = await IssueService().list_comments(session, organization_id=org_id, issue_id=issue_id)
    return [CommentView.model_validate(c) for c in rows]


@router.post("/issues/{issue_id}/comments", response_model=CommentView, status_code=status.HTTP_201_CREATED)
async def add_issue_comment(
    issue_id: int,
    body: CommentIn,
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> CommentView:
    async with tx_commit(session):
        comment = await IssueService().add_comment(
            session, organization_id=org_id, issue_id=issue_id, user_id=body.user_id, body=body.body
        )
    return CommentView.model_validate(comment)


# ==========================
# 人员统计
# ==========================


@router.get("/team-stats", response_model=List[CounterStatView])
async def team_stats(
    session_id: Optional[int] = Query(None),
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[CounterStatView]:
    rows = await TeamStats().counter_stats(session, organization_id=org_id, session_id=session_id)
    return [CounterStatView.model_validate(r) for r in rows]


@router.get("/counters", response_model=List[str])
async def counters(
    status_: Optional[str] = Query(None, alias="status"),
    org_id: str = Depends(require_org_id),
    session: AsyncSession = Depends(get_session),
) -> List[str]:
    return await list_counters(session, organization_id=org_id, status=status_)
