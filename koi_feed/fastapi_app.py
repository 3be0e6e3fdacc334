"""Read-only JSON API over the aggregated KOI data.

One DataService is shared by every request for the lifetime of the
process. The reminder scheduler is wired to the service's
upcoming-changed hook, so each refresh of the upcoming matches reschedules
the local reminders.

Run with: `uvicorn koi_feed.fastapi_app:app --reload`

Environment:
- LOG_LEVEL: logging level for the process (default INFO)
- ENABLE_REMINDERS=1: start the APScheduler thread on startup; jobs are
  still computed without it but never fire
- NOTIFICATION_PREFS_PATH: JSON preferences file (default .data/notification_prefs.json)
"""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from koi_feed.config import load_settings
from koi_feed.data_service import DataService
from koi_feed.models import NotificationPreference
from koi_feed.notifications import NotificationPreferenceStore, ReminderScheduler

logger = logging.getLogger(__name__)

_service: Optional[DataService] = None
_reminders: Optional[ReminderScheduler] = None


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_reminders() -> ReminderScheduler:
    global _reminders  # pylint: disable=global-statement
    if _reminders is None:
        settings = load_settings()
        store = NotificationPreferenceStore(os.getenv("NOTIFICATION_PREFS_PATH", ".data/notification_prefs.json"))
        _reminders = ReminderScheduler(store, timezone_name=settings.timezone, minutes=settings.reminder_minutes)
    return _reminders


def get_service() -> DataService:
    global _service  # pylint: disable=global-statement
    if _service is None:
        _service = DataService(load_settings(), on_upcoming_changed=get_reminders().schedule_match_reminders)
    return _service


def _not_found(what: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"{what} not found"})


# Teams


async def list_teams() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in await get_service().get_all_teams()]


async def get_team(team_id: str):
    team = await get_service().get_team(team_id)
    if team is None:
        return _not_found("team")
    return team.to_dict()


async def get_team_matches(team_id: str) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in await get_service().get_team_matches(team_id)]


async def get_team_tournaments(team_id: str) -> List[Dict[str, Any]]:
    return [t.to_dict() for t in await get_service().get_tournaments_by_team(team_id)]


async def get_player(team_id: str, player_id: str):
    player = await get_service().get_player(player_id, team_id)
    if player is None:
        return _not_found("player")
    return player.to_dict()


# Matches


async def upcoming_matches() -> List[Dict[str, Any]]:
    return [m.to_dict() for m in await get_service().get_upcoming_matches()]


async def live_matches() -> List[Dict[str, Any]]:
    return [m.to_dict() for m in await get_service().get_live_matches()]


async def past_matches() -> List[Dict[str, Any]]:
    return [m.to_dict() for m in await get_service().get_past_matches()]


async def get_match(match_id: str):
    match = await get_service().get_match(match_id)
    if match is None:
        return _not_found("match")
    return match.to_dict()


# Tournaments


async def upcoming_tournaments() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in await get_service().get_upcoming_tournaments()]


async def live_tournaments() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in await get_service().get_live_tournaments()]


async def past_tournaments() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in await get_service().get_past_tournaments()]


async def get_tournament(tournament_id: str):
    tournament = await get_service().get_tournament(tournament_id)
    if tournament is None:
        return _not_found("tournament")
    return tournament.to_dict()


# Maintenance and preferences


async def clear_cache() -> Dict[str, Any]:
    get_service().clear_cache()
    return {"ok": True}


async def cache_info() -> Dict[str, Any]:
    """Age in seconds of every cached entry."""
    return get_service().cache.info()


async def refresh_team_ids() -> Dict[str, Any]:
    ids = await get_service().refresh_team_ids()
    return {"ok": True, "team_ids": ids}


def list_preferences() -> List[Dict[str, Any]]:
    return [p.to_dict() for p in get_reminders().store.load().values()]


async def set_preference(team_id: str, payload: dict) -> Dict[str, Any]:
    """Store one team's preference and reschedule against the cached upcoming list."""
    pref = NotificationPreference(
        team_id=team_id,
        enabled=bool(payload.get("enabled", True)),
        match_reminders=bool(payload.get("match_reminders", True)),
        live_alerts=bool(payload.get("live_alerts", False)),
        result_alerts=bool(payload.get("result_alerts", False)),
    )
    reminders = get_reminders()
    await asyncio.to_thread(reminders.store.set, pref)
    upcoming = await get_service().get_upcoming_matches()
    scheduled = await asyncio.to_thread(reminders.schedule_match_reminders, upcoming)
    return {"ok": True, "preference": pref.to_dict(), "scheduled": scheduled}


@asynccontextmanager
async def _lifespan(app):  # pragma: no cover
    configure_logging()
    if os.getenv("ENABLE_REMINDERS") == "1":
        get_reminders().start()
    yield
    if _reminders is not None:
        _reminders.shutdown()
    if _service is not None:
        await _service.close()


app = FastAPI(title="KOI Feed API", lifespan=_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:8081", "http://localhost:8081", "http://127.0.0.1:8000", "http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.get("/api/teams")(list_teams)
app.get("/api/teams/{team_id}")(get_team)
app.get("/api/teams/{team_id}/matches")(get_team_matches)
app.get("/api/teams/{team_id}/tournaments")(get_team_tournaments)
app.get("/api/teams/{team_id}/players/{player_id}")(get_player)

# fixed paths before the {match_id} / {tournament_id} routes
app.get("/api/matches/upcoming")(upcoming_matches)
app.get("/api/matches/live")(live_matches)
app.get("/api/matches/past")(past_matches)
app.get("/api/matches/{match_id}")(get_match)

app.get("/api/tournaments/upcoming")(upcoming_tournaments)
app.get("/api/tournaments/live")(live_tournaments)
app.get("/api/tournaments/past")(past_tournaments)
app.get("/api/tournaments/{tournament_id}")(get_tournament)

app.post("/api/cache/clear")(clear_cache)
app.get("/api/cache/info")(cache_info)
app.post("/api/teams/refresh-ids")(refresh_team_ids)
app.get("/api/notifications/preferences")(list_preferences)
app.put("/api/notifications/preferences/{team_id}")(set_preference)
