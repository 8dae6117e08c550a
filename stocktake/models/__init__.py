# stocktake/models/__init__.py
"""
统一导出 ORM 模型。
"""

from stocktake.models.stock_activity import StockActivity
from stocktake.models.stock_issue import StockIssue, StockIssueComment
from stocktake.models.stock_item import StockItem
from stocktake.models.stock_session import StockSession
from stocktake.models.user_profile import UserProfile
from stocktake.models.zone_assignment import ZoneAssignment

__all__ = [
    "StockActivity",
    "StockIssue",
    "StockIssueComment",
    "StockItem",
    "StockSession",
    "UserProfile",
    "ZoneAssignment",
]
