from datetime import datetime, timezone

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi.testclient import TestClient

from koi_feed import fastapi_app
from koi_feed.connectors.cache import TTLCache
from koi_feed.data.curated_tournaments import curated_tournament, curated_tournaments
from koi_feed.data.static_teams import static_team, static_teams
from koi_feed.models import Match, MatchTeam
from koi_feed.notifications import NotificationPreferenceStore, ReminderScheduler


def _match(mid="panda-match-5"):
    return Match(
        id=mid,
        team_id="panda-1",
        game="league_of_legends",
        tournament="LEC — Winter 2026",
        date="2026-01-10",
        time="18:00",
        status="upcoming",
        home_team=MatchTeam(name="Movistar KOI", tag="KOI", id="panda-1"),
        away_team=MatchTeam(name="Team Heretics", tag="TH", id="panda-50"),
        best_of=3,
        standing="3rd / 10",
    )


class FakeService:
    def __init__(self):
        self.cleared = False
        self.cache = TTLCache(clock=lambda: 100.0)
        self.cache.set("ds-upcoming-matches", [])

    async def get_all_teams(self):
        return static_teams()

    async def get_team(self, team_id):
        return static_team(team_id)

    async def get_team_matches(self, team_id):
        return [_match()] if team_id == "panda-1" else []

    async def get_tournaments_by_team(self, team_id):
        return [t for t in curated_tournaments() if t.team_id == team_id]

    async def get_player(self, player_id, team_id):
        team = static_team(team_id)
        return next((p for p in team.members if p.id == player_id), None) if team else None

    async def get_upcoming_matches(self):
        return [_match()]

    async def get_live_matches(self):
        return []

    async def get_past_matches(self):
        return []

    async def get_match(self, match_id):
        return _match(match_id) if match_id == "panda-match-5" else None

    async def get_upcoming_tournaments(self):
        return curated_tournaments("upcoming")

    async def get_live_tournaments(self):
        return []

    async def get_past_tournaments(self):
        return curated_tournaments("finished")

    async def get_tournament(self, tournament_id):
        return curated_tournament(tournament_id)

    def clear_cache(self):
        self.cleared = True

    async def refresh_team_ids(self):
        return [1, 2]


@pytest.fixture
def service(monkeypatch, tmp_path):
    fake = FakeService()
    reminders = ReminderScheduler(
        NotificationPreferenceStore(tmp_path / "prefs.json"),
        notify=lambda title, body, data: None,
        scheduler=BackgroundScheduler(),
        now=lambda: datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc),
    )
    monkeypatch.setattr(fastapi_app, "_service", fake)
    monkeypatch.setattr(fastapi_app, "_reminders", reminders)
    return fake


@pytest.fixture
def client(service):
    return TestClient(fastapi_app.app)


def test_teams_list_and_detail(client):
    resp = client.get("/api/teams")
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()] == ["static-tft", "static-pokemon"]

    team = client.get("/api/teams/static-tft").json()
    assert team["name"] == "KOI TFT"
    assert len(team["members"]) == 4


def test_unknown_team_is_404(client):
    resp = client.get("/api/teams/nope")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "team not found"}


def test_team_player_and_sub_resources(client):
    player = client.get("/api/teams/static-tft/players/static-tft-1").json()
    assert player["nickname"] == "Reven"
    assert client.get("/api/teams/static-tft/players/ghost").status_code == 404

    assert client.get("/api/teams/static-tft/matches").json() == []
    tournaments = client.get("/api/teams/static-pokemon/tournaments").json()
    assert tournaments and {t["team_id"] for t in tournaments} == {"static-pokemon"}


def test_match_feeds_route_before_match_id(client):
    upcoming = client.get("/api/matches/upcoming").json()
    assert upcoming[0]["id"] == "panda-match-5"
    assert upcoming[0]["home_team"]["tag"] == "KOI"
    assert upcoming[0]["standing"] == "3rd / 10"
    assert "tournament_id" not in upcoming[0]
    assert client.get("/api/matches/live").json() == []
    assert client.get("/api/matches/past").json() == []


def test_match_detail_and_404(client):
    assert client.get("/api/matches/panda-match-5").json()["best_of"] == 3
    resp = client.get("/api/matches/panda-match-404")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "match not found"}


def test_tournament_routes(client):
    past = client.get("/api/tournaments/past").json()
    assert [t["id"] for t in past] == [t.id for t in curated_tournaments("finished")]
    assert client.get("/api/tournaments/live").json() == []

    euic = client.get("/api/tournaments/curated-vgc-euic-2026").json()
    assert euic["location"] == "London, UK"
    assert [p["day"] for p in euic["phases"]] == [1, 2]
    assert client.get("/api/tournaments/lp-tft-missing").status_code == 404


def test_maintenance_endpoints(client, service):
    assert client.post("/api/cache/clear").json() == {"ok": True}
    assert service.cleared is True
    assert client.post("/api/teams/refresh-ids").json() == {"ok": True, "team_ids": [1, 2]}
    assert client.get("/api/cache/info").json() == {"ds-upcoming-matches": 0.0}


def test_preferences_are_stored_and_reschedule_reminders(client):
    resp = client.put("/api/notifications/preferences/panda-1", json={"enabled": True, "live_alerts": True})
    body = resp.json()
    assert body["ok"] is True
    assert body["scheduled"] == 1
    assert body["preference"]["live_alerts"] is True
    assert fastapi_app._reminders.scheduled() == ["reminder-panda-match-5"]

    prefs = client.get("/api/notifications/preferences").json()
    assert prefs == [{
        "team_id": "panda-1",
        "enabled": True,
        "match_reminders": True,
        "live_alerts": True,
        "result_alerts": False,
    }]
