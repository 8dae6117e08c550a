# stocktake/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header

from stocktake.core.errors import Unauthorized
from stocktake.db.session import get_session  # noqa: F401  (路由统一从这里取)


async def get_org_id(x_org_id: Optional[str] = Header(None, alias="X-Org-Id")) -> Optional[str]:
    """组织上下文（宽松版）：可缺省，由 service 决定是否 Unauthorized。"""
    v = (x_org_id or "").strip()
    return v or None


async def require_org_id(x_org_id: Optional[str] = Header(None, alias="X-Org-Id")) -> str:
    """组织上下文（严格版）：缺失直接 403。"""
    v = (x_org_id or "").strip()
    if not v:
        raise Unauthorized("organization required")
    return v
