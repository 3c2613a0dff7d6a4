"""Live-room acknowledgment adapter.

After a forward succeeds, every configured account posts a one-line danmaku
into the reported room. Targets run concurrently; a rate-limited target is
retried a fixed number of times, any other failure abandons that target.
Nothing here ever fails the forward.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Awaitable, Callable
from urllib.parse import urlencode

import aiohttp
from aiohttp import ContentTypeError

from adapters.notification_formatting import format_acknowledgment
from core.config import NotificationConfig, NotificationTarget
from core.models import ParsedEvent

LOGGER = logging.getLogger(__name__)

# Fixed display parameters: white, normal size, scrolling.
DISPLAY_PARAMS = {
    "color": "16777215",
    "fontsize": "25",
    "mode": "1",
    "bubble": "0",
}


class DanmakuError(Exception):
    """A single send attempt failed and should not be retried."""


class RateLimitedError(DanmakuError):
    """The API asked us to slow down; the attempt may be retried."""


def sign_params(params: dict, app_secret: str) -> str:
    """Return lowercase hex md5 of the key-sorted query string plus the secret."""

    query = urlencode(sorted(params.items()))
    return hashlib.md5(f"{query}{app_secret}".encode("utf-8")).hexdigest()


def build_form(target: NotificationTarget, room_id: str, text: str, timestamp: int) -> dict:
    params = {
        "access_key": target.access_key,
        "appkey": target.app_key,
        "roomid": room_id,
        "msg": text,
        "ts": str(timestamp),
        "rnd": str(timestamp),
        **DISPLAY_PARAMS,
    }
    params["sign"] = sign_params(params, target.app_secret)
    return params


class DanmakuNotifier:
    """Acknowledger that posts danmaku for each configured target."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: NotificationConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session
        self._config = config
        self._sleep = sleep
        self._clock = clock

    def _is_rate_limited(self, message: str) -> bool:
        return any(phrase in message for phrase in self._config.rate_limit_phrases)

    async def _post_once(self, target: NotificationTarget, room_id: str, text: str) -> None:
        form = build_form(target, room_id, text, int(self._clock()))
        try:
            async with self._session.post(self._config.url, data=form) as resp:
                try:
                    payload = await resp.json()
                except (ContentTypeError, ValueError) as exc:
                    raise DanmakuError(f"HTTP {resp.status}: response is not JSON") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DanmakuError(f"network error: {exc}") from exc

        if not isinstance(payload, dict):
            raise DanmakuError("response is not an object")
        if payload.get("code") == 0:
            return
        message = str(payload.get("message") or payload.get("msg") or "")
        if self._is_rate_limited(message):
            raise RateLimitedError(message)
        raise DanmakuError(f"code {payload.get('code')}: {message}")

    async def _send_with_retry(self, target: NotificationTarget, room_id: str, text: str) -> bool:
        label = target.label or target.app_key
        attempts = 1 + max(0, self._config.retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self._post_once(target, room_id, text)
            except RateLimitedError as exc:
                if attempt == attempts:
                    LOGGER.warning("Acknowledgment for %s gave up after %s attempts: %s", label, attempts, exc)
                    return False
                LOGGER.info("Acknowledgment for %s rate limited, retry %s/%s", label, attempt, attempts - 1)
                await self._sleep(self._config.retry_delay_seconds)
            except DanmakuError as exc:
                LOGGER.warning("Acknowledgment for %s failed: %s", label, exc)
                return False
            else:
                LOGGER.info("Acknowledgment sent by %s to room %s", label, room_id)
                return True
        return False

    async def acknowledge(self, room_id: str, event: ParsedEvent) -> None:
        if not self._config.enabled or not self._config.targets:
            return

        text = format_acknowledgment(self._config.message, room_id, event)
        results = await asyncio.gather(
            *(self._send_with_retry(target, room_id, text) for target in self._config.targets),
            return_exceptions=True,
        )
        for target, result in zip(self._config.targets, results):
            if isinstance(result, BaseException):
                LOGGER.error("Acknowledgment for %s crashed", target.label or target.app_key, exc_info=result)
