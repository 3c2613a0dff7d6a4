from __future__ import annotations

import asyncio
import hashlib

from adapters.danmaku_notifier import DanmakuNotifier, build_form, sign_params
from core.config import NotificationConfig, NotificationTarget
from core.models import ParsedEvent, Reward

EVENT = ParsedEvent(date_time="11月28日", rewards=(Reward(amount=20000, condition="14级灯牌"),))


class FakeResponse:
    def __init__(self, payload) -> None:
        self.payload = payload
        self.status = 200

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payloads: dict) -> None:
        # One list of payloads per access key, consumed in order.
        self.payloads = payloads
        self.posts: list[dict] = []

    def post(self, url, data=None):
        self.posts.append(data)
        return FakeResponse(self.payloads[data["access_key"]].pop(0))


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _target(name: str) -> NotificationTarget:
    return NotificationTarget(label=name, access_key=f"key-{name}", app_key="app", app_secret="secret")


def _config(*targets: NotificationTarget, retry_attempts: int = 4) -> NotificationConfig:
    return NotificationConfig(
        enabled=True,
        url="https://live.example/msg/send",
        message="喵~",
        retry_attempts=retry_attempts,
        retry_delay_seconds=2.0,
        targets=list(targets),
    )


RATE_LIMITED = {"code": 10030, "message": "您发送弹幕的频率过快"}
OK = {"code": 0, "message": ""}


def test_sign_params_matches_md5_of_sorted_query() -> None:
    expected = hashlib.md5(b"a=1&b=%E5%96%B5secret").hexdigest()
    assert sign_params({"b": "喵", "a": "1"}, "secret") == expected


def test_build_form_is_signed() -> None:
    form = build_form(_target("a"), "12345678", "喵~", 1700000000)
    unsigned = {key: value for key, value in form.items() if key != "sign"}
    assert form["roomid"] == "12345678"
    assert form["ts"] == "1700000000"
    assert form["color"] == "16777215"
    assert form["sign"] == sign_params(unsigned, "secret")


def test_rate_limited_target_is_retried() -> None:
    session = FakeSession({"key-a": [RATE_LIMITED, RATE_LIMITED, OK]})
    sleep = FakeSleep()
    notifier = DanmakuNotifier(session, _config(_target("a")), sleep=sleep, clock=lambda: 1700000000.0)

    asyncio.run(notifier.acknowledge("12345678", EVENT))

    assert len(session.posts) == 3
    assert sleep.delays == [2.0, 2.0]


def test_gives_up_after_last_retry() -> None:
    session = FakeSession({"key-a": [RATE_LIMITED] * 5})
    sleep = FakeSleep()
    notifier = DanmakuNotifier(session, _config(_target("a")), sleep=sleep)

    asyncio.run(notifier.acknowledge("12345678", EVENT))

    assert len(session.posts) == 5
    assert len(sleep.delays) == 4


def test_other_errors_are_not_retried() -> None:
    session = FakeSession({"key-a": [{"code": -101, "message": "账号未登录"}], "key-b": [OK]})
    sleep = FakeSleep()
    notifier = DanmakuNotifier(session, _config(_target("a"), _target("b")), sleep=sleep)

    asyncio.run(notifier.acknowledge("12345678", EVENT))

    assert sorted(form["access_key"] for form in session.posts) == ["key-a", "key-b"]
    assert sleep.delays == []


def test_disabled_notifier_sends_nothing() -> None:
    session = FakeSession({})
    config = NotificationConfig(enabled=False, targets=[_target("a")])
    notifier = DanmakuNotifier(session, config)

    asyncio.run(notifier.acknowledge("12345678", EVENT))

    assert session.posts == []
