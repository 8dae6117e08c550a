# stocktake/models/enums.py
from __future__ import annotations

from enum import Enum


class ItemStatus(str, Enum):
    PENDING = "pending"
    COUNTED = "counted"
    VARIANCE = "variance"
    VERIFIED = "verified"


# 计入“已盘”覆盖率的状态
COVERED_STATUSES = (ItemStatus.COUNTED.value, ItemStatus.VARIANCE.value, ItemStatus.VERIFIED.value)


class ActivityType(str, Enum):
    COUNT = "count"
    VARIANCE = "variance"
    VERIFY = "verify"
    JOIN = "join"
    ZONE_COMPLETE = "zone_complete"


class SessionStatus(str, Enum):
    LIVE = "live"
    PAUSED = "paused"
    COMPLETED = "completed"


class IssueStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


# 进入这两个状态时打 resolved_at
CLOSED_ISSUE_STATUSES = (IssueStatus.RESOLVED.value, IssueStatus.CLOSED.value)


class IssuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
