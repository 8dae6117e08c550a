# stocktake/schemas/stock.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# ==========================
# Request models
# ==========================


class CountIn(BaseModel):
    """
    计数提交：
      - counted_qty：实盘绝对量，严格非负整数（不接受 "5" / 5.0 / true）
      - captured_barcode：扫码得到的码；有值则先过校验位，手输不传
      - session_id：显式会话（不取“最新一场”）
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    counted_qty: int = Field(..., ge=0, strict=True, description="实盘数量")
    actor_id: str = Field(..., min_length=1, description="操作人外部 id")
    session_id: Optional[int] = Field(None, description="盘点会话 id")
    captured_barcode: Optional[str] = Field(None, description="扫码原文")
    barcode_format: Optional[str] = Field(None, description="扫码枪上报的码制，如 EAN_13")


class VerifyIn(BaseModel):
    actor_id: str = Field(..., min_length=1)
    session_id: Optional[int] = None


class BulkVerifyIn(BaseModel):
    item_ids: List[int] = Field(default_factory=list)
    actor_id: str = Field(..., min_length=1)
    session_id: Optional[int] = None


class BulkUpdateIn(BaseModel):
    item_ids: List[int] = Field(default_factory=list)
    actor_id: str = Field(..., min_length=1)
    session_id: Optional[int] = None
    verified: bool = False
    location: Optional[str] = None


class BarcodeValidateIn(BaseModel):
    code: str
    format: Optional[str] = None


class SessionCreateIn(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None


class SessionPatchIn(BaseModel):
    status: str


class ZoneAssignmentItemIn(BaseModel):
    zone_code: str
    user_id: Optional[str] = None


class ZoneAssignIn(BaseModel):
    session_id: Optional[int] = None
    assignments: List[ZoneAssignmentItemIn] = Field(default_factory=list)


IssueStatusLit = Literal["open", "in_progress", "resolved", "closed"]
IssuePriorityLit = Literal["low", "medium", "high", "critical"]


class IssueCreateIn(BaseModel):
    """
    新建问题单：title 必填；priority 缺省 medium；
    挂了 item_id 而没给 zone 时，zone 取商品库位。
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: Optional[IssuePriorityLit] = None
    classification: Optional[str] = None
    category: Optional[str] = None
    zone: Optional[str] = None
    item_id: Optional[int] = None
    session_id: Optional[int] = None
    reporter_id: Optional[str] = None


class VarianceIssueIn(BaseModel):
    reporter_id: Optional[str] = None
    session_id: Optional[int] = None
    description: Optional[str] = None
    priority: Optional[IssuePriorityLit] = None


class IssuePatchIn(BaseModel):
    # assignee_id = "" 表示取消指派
    status: Optional[IssueStatusLit] = None
    priority: Optional[IssuePriorityLit] = None
    assignee_id: Optional[str] = None
    classification: Optional[str] = None
    zone: Optional[str] = None


class IssueBulkIn(BaseModel):
    ids: List[int] = Field(default_factory=list)
    status: Optional[IssueStatusLit] = None
    priority: Optional[IssuePriorityLit] = None
    assignee_id: Optional[str] = None
    zone: Optional[str] = None


class CommentIn(BaseModel):
    body: str = Field(..., min_length=1)
    user_id: Optional[str] = None


# ==========================
# Response models
# ==========================


class ItemView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    name: str
    location: str
    expected_qty: int
    counted_qty: Optional[int] = None
    variance: Optional[int] = None
    status: Literal["pending", "counted", "variance", "verified"]
    last_counted_by: Optional[str] = None
    last_counted_at: Optional[datetime] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    warehouse: Optional[str] = None
    uom: Optional[str] = None
    supplier: Optional[str] = None


class BulkOut(BaseModel):
    updated_count: int
    skipped_ids: List[int] = Field(default_factory=list)
    missing_ids: List[int] = Field(default_factory=list)


class LookupOut(BaseModel):
    query: str
    exact: bool
    items: List[ItemView]


class BarcodeValidateOut(BaseModel):
    valid: bool
    normalized: Optional[str] = None
    kind: Optional[str] = None
    reason: Optional[str] = None
    expected_check_digit: Optional[int] = None


class ActivityView(BaseModel):
    id: int
    type: Literal["count", "variance", "verify", "join", "zone_complete"]
    message: str
    user: str
    zone: Optional[str] = None
    item_id: Optional[int] = None
    session_id: Optional[int] = None
    created_at: datetime
    timestamp: str


class ZoneView(BaseModel):
    zone_code: str
    name: str
    total_items: int
    counted_items: int
    variances: int
    assignee_id: Optional[str] = None


class ZoneAssignmentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    zone_code: str
    user_id: str


class SessionView(BaseModel):
    id: int
    name: str
    status: Literal["live", "paused", "completed"]
    started_at: datetime
    paused_at: Optional[datetime] = None
    total_paused_seconds: int
    location: Optional[str] = None
    total_items: int
    counted_items: int
    variance_items: int
    verified_items: int


class IssueView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: IssueStatusLit
    priority: IssuePriorityLit
    classification: Optional[str] = None
    category: Optional[str] = None
    zone: Optional[str] = None
    item_id: Optional[int] = None
    session_id: Optional[int] = None
    reporter_id: Optional[str] = None
    reporter_name: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    comment_count: int = 0


class IssueListOut(BaseModel):
    issues: List[IssueView]
    total: int


class IssueBulkOut(BaseModel):
    updated_count: int
    missing_ids: List[int] = Field(default_factory=list)


class CommentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    issue_id: int
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    body: str
    created_at: datetime


class CounterStatView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    user_name: str
    zone_code: Optional[str] = None
    items_counted: int
    last_active_at: Optional[datetime] = None
    last_active: Optional[str] = None
