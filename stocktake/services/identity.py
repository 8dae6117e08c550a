# stocktake/services/identity.py
from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.models.user_profile import UserProfile

log = logging.getLogger("stocktake.identity")


def masked_user_label(user_id: Optional[str]) -> str:
    uid = (user_id or "").strip()
    return f"User {uid[-6:]}" if uid else "Unknown"


def format_display_name(first_name: Optional[str], last_name: Optional[str], user_id: Optional[str]) -> str:
    """
    操作人展示名（所有写路径共用）：
      "名 姓" → 名 → 姓 → "User <id 末 6 位>" → "Unknown"
    """
    first = (first_name or "").strip()
    last = (last_name or "").strip()
    if first and last:
        return f"{first} {last}"
    if first:
        return first
    if last:
        return last
    return masked_user_label(user_id)


class IdentityProvider(Protocol):
    async def display_name(self, session: AsyncSession, user_id: str) -> str: ...


class ProfileIdentityProvider:
    """基于 user_profiles 表解析展示名；查不到时退化为打码 id。"""

    async def display_name(self, session: AsyncSession, user_id: str) -> str:
        profile = await session.get(UserProfile, user_id) if user_id else None
        if profile is None:
            log.debug("no profile for actor %s, using masked id", user_id)
            return masked_user_label(user_id)
        return format_display_name(profile.first_name, profile.last_name, profile.user_id)
