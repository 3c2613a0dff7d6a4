"""Profile API adapter.

Looks up room -> owner uid -> upload count in two requests. Every way the
lookup can go wrong surfaces as EnrichmentError.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import aiohttp
from aiohttp import ContentTypeError

from core.config import EnrichmentPolicy
from core.models import ProfileStats
from core.ports import EnrichmentError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomInfo:
    """Subset of the room-info response the relay needs."""

    uid: int


@dataclass(frozen=True)
class UserStats:
    """Subset of the user-stats response the relay needs."""

    video: int


def _data_field(payload: Any, field_name: str, endpoint: str) -> int:
    """Return ``payload["data"][field_name]`` after checking the envelope."""

    if not isinstance(payload, dict):
        raise EnrichmentError(f"{endpoint}: response is not an object")
    code = payload.get("code")
    if code != 0:
        message = payload.get("message") or payload.get("msg") or ""
        raise EnrichmentError(f"{endpoint}: code {code} {message}".strip())
    data = payload.get("data")
    if not isinstance(data, dict) or field_name not in data:
        raise EnrichmentError(f"{endpoint}: missing data.{field_name}")
    value = data[field_name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EnrichmentError(f"{endpoint}: data.{field_name} is not a number")
    return int(value)


def parse_room_info(payload: Any) -> RoomInfo:
    return RoomInfo(uid=_data_field(payload, "uid", "room-info"))


def parse_user_stats(payload: Any) -> UserStats:
    return UserStats(video=_data_field(payload, "video", "user-stats"))


class ProfileClient:
    """Client for the read-only profile lookup API."""

    def __init__(self, session: aiohttp.ClientSession, policy: EnrichmentPolicy) -> None:
        if not policy.base_url:
            raise ValueError("enrichment.base_url is required")
        self._session = session
        self._base_url = policy.base_url.rstrip("/")
        self._room_info_path = policy.room_info_path
        self._user_stats_path = policy.user_stats_path
        self._timeout = aiohttp.ClientTimeout(total=policy.timeout_seconds)

    async def _get_json(self, path: str, params: dict) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._session.get(url, params=params, timeout=self._timeout) as resp:
                if resp.status >= 400:
                    raise EnrichmentError(f"{path}: HTTP {resp.status}")
                try:
                    return await resp.json()
                except (ContentTypeError, ValueError) as exc:
                    raise EnrichmentError(f"{path}: response is not JSON") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise EnrichmentError(f"{path}: network error: {exc}") from exc

    async def room_info(self, room_id: str) -> RoomInfo:
        return parse_room_info(await self._get_json(self._room_info_path, {"room_id": room_id}))

    async def user_stats(self, uid: int) -> UserStats:
        return parse_user_stats(await self._get_json(self._user_stats_path, {"uid": str(uid)}))

    async def lookup(self, room_id: str) -> ProfileStats:
        room = await self.room_info(room_id)
        stats = await self.user_stats(room.uid)
        LOGGER.debug("Room %s belongs to uid %s with %s uploads", room_id, room.uid, stats.video)
        return ProfileStats(uid=room.uid, video_count=stats.video)
