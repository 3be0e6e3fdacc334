import asyncio
import json
from datetime import datetime, timezone

import httpx

from koi_feed.config import Settings
from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.errors import StartGGError
from koi_feed.connectors.startgg_connector import StartGGConnector
from koi_feed.startgg_service import StartGGService, state_to_status, tournament_image

DAY = 86400


def _ts(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


TFT_OPEN = {
    "id": 11,
    "name": "TFT Paris Open",
    "slug": "tournament/tft-paris-open",
    "state": 3,
    "startAt": _ts(2026, 1, 10, 17, 0),
    "endAt": _ts(2026, 1, 10, 17, 0) + 2 * DAY,
    "city": "Paris",
    "countryCode": "FR",
    "numAttendees": 256,
    "images": [{"type": "banner", "url": "https://img/banner"}, {"type": "profile", "url": "https://img/profile"}],
    "events": [{"id": 101, "name": "TFT Singles", "videogame": {"id": 33594, "name": "TFT"}}],
}

VGC_REGIONAL = {
    "id": 12,
    "name": "Barcelona Regional",
    "slug": "tournament/barcelona-regional",
    "state": 2,
    "startAt": _ts(2026, 2, 7, 8, 0),
    "isOnline": False,
    "events": [
        {"id": 201, "name": "VG Masters", "numEntrants": 300, "videogame": {"id": 1, "name": "Pokémon Scarlet & Violet"}},
    ],
}

STANDINGS = [
    {"placement": 3, "entrant": {"id": 900, "participants": [{"gamerTag": "Reven"}]}},
    {"placement": 1, "entrant": {"id": 901, "participants": [{"gamerTag": "Someone"}]}},
]

SETS = {"sets": [
    {"state": 3, "winnerId": 900, "fullRoundText": "Winners Semi", "slots": [{"entrant": {"id": 900}}, {"entrant": {"id": 901}}]},
    {"state": 3, "winnerId": 901, "fullRoundText": "Losers Final", "slots": [{"entrant": {"id": 900}}, {"entrant": {"id": 901}}]},
    {"state": 2, "winnerId": None, "fullRoundText": None, "slots": [{"entrant": {"id": 900}}]},
], "total": 3}


class FakeStartGG:
    def __init__(self, by_slug, fail_events=False):
        self.by_slug = by_slug
        self.fail_events = fail_events
        self.calls = []

    async def get_tournament_by_slug(self, slug):
        self.calls.append(("slug", slug))
        if slug not in self.by_slug:
            raise StartGGError("Tournament not found")
        return self.by_slug[slug]

    async def get_user_tournaments(self, user_id, page=1, per_page=15):
        self.calls.append(("user", user_id))
        return []

    async def get_event_standings(self, event_id, per_page=64):
        self.calls.append(("standings", event_id))
        if self.fail_events:
            raise StartGGError("start.gg API error: 503 Service Unavailable", 503)
        return STANDINGS

    async def get_event_sets(self, event_id, per_page=50):
        self.calls.append(("sets", event_id))
        if self.fail_events:
            raise StartGGError("start.gg API error: 503 Service Unavailable", 503)
        return SETS


def _service(slugs, connector):
    settings = Settings(startgg_token="sgg", startgg_tracked_slugs={"tft": slugs})
    return StartGGService(connector, settings, TTLCache())


def test_state_mapping_and_profile_image():
    assert [state_to_status(s) for s in (1, 2, 3, None, 9)] == ["upcoming", "live", "finished", "upcoming", "upcoming"]
    assert tournament_image(TFT_OPEN) == "https://img/profile"
    assert tournament_image({"images": []}) is None


def test_map_tournament_renders_local_time_and_location():
    service = _service([], FakeStartGG({}))
    t = service.map_tournament(TFT_OPEN)
    assert t.id == "sgg-11"
    assert t.team_id == "static-tft"
    assert t.game == "tft"
    assert (t.start_date, t.end_date, t.time) == ("2026-01-10", "2026-01-12", "18:00")
    assert t.location == "Paris, FR"
    assert t.total_participants == 256
    assert t.status == "finished"
    assert t.stream_url is None
    assert t.external_url == "https://start.gg/tournament/tft-paris-open"
    assert [p.player_name for p in t.participants] == ["Reven", "Dalesom", "ODESZA", "Safo20"]


def test_tft_phases_follow_tournament_length():
    service = _service([], FakeStartGG({}))
    phases = service.build_phases(TFT_OPEN, "tft")
    assert [p.name for p in phases] == ["Day 1 — Open Lobbies", "Day 2 — Grand Finals"]
    assert {p.status for p in phases} == {"finished"}

    live = dict(TFT_OPEN, state=2, endAt=TFT_OPEN["startAt"] + 3 * DAY)
    phases = service.build_phases(live, "tft")
    assert [(p.day, p.status) for p in phases] == [(1, "live"), (2, "upcoming"), (3, "upcoming")]
    assert phases[1].name == "Day 2 — Elimination"


def test_vgc_game_inferred_from_videogame_name():
    service = _service([], FakeStartGG({}))
    t = service.map_tournament(VGC_REGIONAL)
    assert t.game == "pokemon_vgc"
    assert t.team_id == "static-pokemon"
    assert t.total_participants == 300
    assert t.stream_url == "https://start.gg/tournament/barcelona-regional"
    assert [(p.day, p.status) for p in t.phases] == [(1, "live"), (2, "upcoming")]


def test_unknown_game_is_skipped():
    service = _service([], FakeStartGG({}))
    assert service.map_tournament({"id": 1, "name": "Smash Weekly", "events": []}) is None


def test_disabled_without_sources_queries_nothing():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN})
    service = StartGGService(connector, Settings(startgg_token="sgg"), TTLCache())
    assert service.enabled is False
    assert asyncio.run(service.fetch_past()) == []
    assert connector.calls == []


def test_past_tournaments_enriched_with_placements_and_records():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN, "tournament/barcelona-regional": VGC_REGIONAL})
    service = _service(["tournament/tft-paris-open", "tournament/barcelona-regional"], connector)

    past = asyncio.run(service.fetch_past())
    assert [t.id for t in past] == ["sgg-11"]
    reven = past[0].participants[0]
    assert reven.player_name == "Reven"
    assert reven.placement == 3
    assert (reven.wins, reven.losses) == (1, 1)
    assert reven.eliminated is True
    assert past[0].participants[1].placement is None

    assert [t.id for t in asyncio.run(service.fetch_live())] == ["sgg-12"]
    assert asyncio.run(service.fetch_upcoming()) == []


def test_event_failure_keeps_roster_entries():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN}, fail_events=True)
    service = _service(["tournament/tft-paris-open"], connector)
    past = asyncio.run(service.fetch_past())
    assert len(past) == 1
    assert all(p.placement is None and p.wins is None for p in past[0].participants)


def test_event_connection_failure_keeps_roster_entries():
    def handler(request):
        variables = json.loads(request.content)["variables"]
        if "slug" in variables:
            return httpx.Response(200, json={"data": {"tournament": TFT_OPEN}})
        raise httpx.ConnectError("connection reset", request=request)

    connector = StartGGConnector(token="sgg", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    service = _service(["tournament/tft-paris-open"], connector)
    past = asyncio.run(service.fetch_past())
    assert [t.id for t in past] == ["sgg-11"]
    assert all(p.placement is None for p in past[0].participants)


def test_failed_slug_is_skipped():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN})
    service = _service(["tournament/missing", "tournament/tft-paris-open"], connector)
    assert [t.id for t in asyncio.run(service.fetch_past())] == ["sgg-11"]


def test_fetch_by_team_filters_by_game():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN, "tournament/barcelona-regional": VGC_REGIONAL})
    service = _service(["tournament/tft-paris-open", "tournament/barcelona-regional"], connector)
    assert [t.id for t in asyncio.run(service.fetch_by_team("static-tft"))] == ["sgg-11"]
    assert [t.id for t in asyncio.run(service.fetch_by_team("static-pokemon"))] == ["sgg-12"]
    assert asyncio.run(service.fetch_by_team("panda-1")) == []


def test_raw_tournaments_cached_between_feeds():
    connector = FakeStartGG({"tournament/tft-paris-open": TFT_OPEN})
    service = _service(["tournament/tft-paris-open"], connector)
    asyncio.run(service.fetch_past())
    asyncio.run(service.fetch_upcoming())
    assert connector.calls.count(("slug", "tournament/tft-paris-open")) == 1
