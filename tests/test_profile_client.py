from __future__ import annotations

import asyncio

import aiohttp
import pytest

from adapters.profile_client import ProfileClient, parse_room_info, parse_user_stats
from core.config import EnrichmentPolicy
from core.models import ProfileStats
from core.ports import EnrichmentError


class FakeResponse:
    def __init__(self, payload, status: int = 200) -> None:
        self.payload = payload
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.requests: list[tuple[str, dict]] = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


POLICY = EnrichmentPolicy(base_url="https://profiles.example/")


def test_lookup_chains_room_and_user() -> None:
    session = FakeSession(
        {
            "https://profiles.example/room-info": FakeResponse({"code": 0, "data": {"uid": 42}}),
            "https://profiles.example/user-stats": FakeResponse({"code": 0, "data": {"video": 500}}),
        }
    )
    client = ProfileClient(session, POLICY)

    stats = asyncio.run(client.lookup("12345678"))

    assert stats == ProfileStats(uid=42, video_count=500)
    assert session.requests == [
        ("https://profiles.example/room-info", {"room_id": "12345678"}),
        ("https://profiles.example/user-stats", {"uid": "42"}),
    ]


def test_http_error_is_enrichment_error() -> None:
    session = FakeSession({"https://profiles.example/room-info": FakeResponse({}, status=502)})
    client = ProfileClient(session, POLICY)

    with pytest.raises(EnrichmentError):
        asyncio.run(client.lookup("12345678"))


def test_network_error_is_enrichment_error() -> None:
    session = FakeSession({"https://profiles.example/room-info": aiohttp.ClientConnectionError("refused")})
    client = ProfileClient(session, POLICY)

    with pytest.raises(EnrichmentError):
        asyncio.run(client.lookup("12345678"))


def test_invalid_json_is_enrichment_error() -> None:
    session = FakeSession({"https://profiles.example/room-info": FakeResponse(ValueError("bad json"))})
    client = ProfileClient(session, POLICY)

    with pytest.raises(EnrichmentError):
        asyncio.run(client.lookup("12345678"))


@pytest.mark.parametrize(
    "payload",
    [
        {"code": -400, "message": "room not found"},
        {"code": 0},
        {"code": 0, "data": {}},
        {"code": 0, "data": {"uid": "42"}},
        {"code": 0, "data": {"uid": True}},
        ["not", "an", "object"],
    ],
)
def test_room_info_envelope_errors(payload) -> None:
    with pytest.raises(EnrichmentError):
        parse_room_info(payload)


def test_user_stats_parses_video_count() -> None:
    assert parse_user_stats({"code": 0, "data": {"video": 12, "follower": 3}}).video == 12


def test_base_url_is_required() -> None:
    with pytest.raises(ValueError):
        ProfileClient(FakeSession({}), EnrichmentPolicy(base_url=""))
