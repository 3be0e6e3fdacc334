"""start.gg tournament mapping for TFT and Pokémon VGC.

Sources, in priority order:
1. tournaments entered by the organization's players (configured user ids)
2. explicitly tracked tournament slugs
3. optionally, a browse of the configured videogames filtered by size

Nothing is queried unless a token and at least one of the sources above
are configured; callers then fall back to wiki and curated data.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from koi_feed.config import Settings
from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.errors import ConnectorError
from koi_feed.connectors.startgg_connector import StartGGConnector
from koi_feed.data.static_teams import static_team_for_game
from koi_feed.models import Tournament, TournamentParticipant, TournamentPhase
from koi_feed.normalize import normalize_name

logger = logging.getLogger(__name__)

CACHE_TTL = 5 * 60
LIVE_TTL = 60

STATE_STATUS = {1: "upcoming", 2: "live", 3: "finished"}
SET_COMPLETED = 3


def state_to_status(state: Optional[int]) -> str:
    return STATE_STATUS.get(state, "upcoming")


def static_team_id(game: str) -> str:
    return {"tft": "static-tft", "pokemon_vgc": "static-pokemon"}.get(game, f"static-{game}")


def tournament_url(t: Dict[str, Any]) -> str:
    return f"https://start.gg/{t.get('slug')}"


def tournament_image(t: Dict[str, Any]) -> Optional[str]:
    images = t.get("images") or []
    if not images:
        return None
    profile = next((i for i in images if i.get("type") == "profile"), None)
    return (profile or images[0]).get("url")


def _game_from_name(name: str) -> Optional[str]:
    name = (name or "").lower()
    if "tft" in name or "teamfight" in name:
        return "tft"
    if "pokémon" in name or "pokemon" in name or "vgc" in name:
        return "pokemon_vgc"
    return None


class StartGGService:
    def __init__(
        self,
        connector: StartGGConnector,
        settings: Settings,
        cache: Optional[TTLCache] = None,
    ):
        self.connector = connector
        self.settings = settings
        self.cache = cache or TTLCache()
        self.tz = ZoneInfo(settings.timezone)

    @property
    def enabled(self) -> bool:
        return self.settings.startgg_has_sources

    # Mapping

    def infer_game(self, t: Dict[str, Any]) -> Optional[str]:
        by_id = {v: k for k, v in self.settings.startgg_videogame_ids.items()}
        for event in t.get("events") or []:
            vg = event.get("videogame") or {}
            if vg.get("id") is not None:
                try:
                    game = by_id.get(int(vg["id"]))
                except (TypeError, ValueError):
                    game = None
                if game:
                    return game
            game = _game_from_name(vg.get("name") or event.get("name") or "")
            if game:
                return game
        return _game_from_name(t.get("name") or "")

    def _local(self, ts: int) -> datetime:
        return datetime.fromtimestamp(ts, tz=timezone.utc).astimezone(self.tz)

    def build_phases(self, t: Dict[str, Any], game: str) -> List[TournamentPhase]:
        status = state_to_status(t.get("state"))
        if game == "tft":
            start, end = t.get("startAt"), t.get("endAt")
            if not start or not end:
                return [TournamentPhase("Tournament", 1, status, "Points-based elimination format.")]
            days = max(1, -(-(end - start) // 86400))
            phases = []
            for d in range(1, min(days, 3) + 1):
                if d == 1:
                    name, desc = "Day 1 — Open Lobbies", "8-player lobbies, points per placement. Bottom players eliminated."
                elif d < days:
                    name, desc = f"Day {d} — Elimination", "Remaining players compete. More eliminations."
                else:
                    name, desc = f"Day {d} — Grand Finals", "Final 8 players. First to checkmate (18-20 pts + Top 1)."
                if status == "finished":
                    phase_status = "finished"
                elif status == "live":
                    phase_status = "live" if d == 1 else "upcoming"
                else:
                    phase_status = "upcoming"
                phases.append(TournamentPhase(name, d, phase_status, desc))
            return phases
        if game == "pokemon_vgc":
            return [
                TournamentPhase(
                    "Day 1 — Swiss Rounds", 1, status,
                    "Players matched by W/L record. Top players qualify to Day 2.",
                ),
                TournamentPhase(
                    "Day 2 — Top Cut", 2, "finished" if status == "finished" else "upcoming",
                    "Single elimination bracket until a champion is crowned.",
                ),
            ]
        return []

    def roster_participants(self, game: str) -> List[TournamentParticipant]:
        team = static_team_for_game(game)
        if team is None:
            return []
        return [
            TournamentParticipant(player_id=p.id, player_name=p.nickname, photo_url=p.photo_url)
            for p in team.members
        ]

    def map_tournament(self, t: Dict[str, Any]) -> Optional[Tournament]:
        game = self.infer_game(t)
        if game is None:
            return None

        status = state_to_status(t.get("state"))
        start = self._local(t["startAt"]) if t.get("startAt") else datetime.now(self.tz)
        end = self._local(t["endAt"]) if t.get("endAt") else None

        parts = [p for p in (t.get("city"), t.get("countryCode")) if p]
        location = ", ".join(parts) if parts else ("Online" if t.get("isOnline") else None)

        total = t.get("numAttendees")
        if total is None and t.get("events"):
            total = sum((e.get("numEntrants") or 0) for e in t["events"])

        return Tournament(
            id=f"sgg-{t.get('id')}",
            team_id=static_team_id(game),
            game=game,
            name=t.get("name") or "",
            location=location,
            start_date=start.date().isoformat(),
            end_date=end.date().isoformat() if end else None,
            time=start.strftime("%H:%M"),
            status=status,
            format="points_elimination" if game == "tft" else "swiss_to_bracket",
            total_participants=total,
            phases=self.build_phases(t, game),
            participants=self.roster_participants(game),
            image_url=tournament_image(t),
            stream_url=tournament_url(t) if status == "live" else None,
            external_url=tournament_url(t),
        )

    # Participant enrichment from event standings and sets

    async def enrich_participants(self, tournament: Tournament, raw: Dict[str, Any]) -> Tournament:
        """Attach placements and win/loss counts for roster players.

        Only tournaments that have started carry standings. A failed event
        query leaves the roster entries as they were.
        """
        if tournament.status == "upcoming":
            return tournament

        by_tag = {normalize_name(p.player_name): p for p in tournament.participants}
        for event in raw.get("events") or []:
            if self.infer_game({"events": [event], "name": ""}) not in (None, tournament.game):
                continue
            try:
                standings, sets = await asyncio.gather(
                    self.connector.get_event_standings(event["id"], per_page=64),
                    self.connector.get_event_sets(event["id"], per_page=50),
                )
            except (ConnectorError, KeyError) as exc:
                logger.warning("start.gg event %s enrichment failed: %s", event.get("id"), exc)
                continue

            entrant_players: Dict[Any, TournamentParticipant] = {}
            for row in standings:
                entrant = row.get("entrant") or {}
                for part in entrant.get("participants") or []:
                    player = by_tag.get(normalize_name(part.get("gamerTag") or ""))
                    if player is not None:
                        player.placement = row.get("placement")
                        entrant_players[entrant.get("id")] = player

            for s in sets.get("sets") or []:
                if s.get("state") != SET_COMPLETED:
                    continue
                for slot in s.get("slots") or []:
                    entrant = slot.get("entrant") or {}
                    player = entrant_players.get(entrant.get("id"))
                    if player is None:
                        for part in entrant.get("participants") or []:
                            player = by_tag.get(normalize_name(part.get("gamerTag") or ""))
                            if player is not None:
                                break
                    if player is None:
                        continue
                    if s.get("winnerId") == entrant.get("id"):
                        player.wins = (player.wins or 0) + 1
                    else:
                        player.losses = (player.losses or 0) + 1
                        if tournament.status == "finished" and (s.get("fullRoundText") or "").lower().startswith("losers"):
                            player.eliminated = True
        return tournament

    # Fetching

    async def _org_tournaments(self) -> List[Dict[str, Any]]:
        """Raw tournaments from user ids, tracked slugs and (optionally) a browse."""
        async def load() -> List[Dict[str, Any]]:
            seen = set()
            found: List[Dict[str, Any]] = []

            def add(items):
                for t in items:
                    if t and t.get("id") not in seen and self.infer_game(t):
                        seen.add(t.get("id"))
                        found.append(t)

            user_ids = [u for ids in self.settings.startgg_player_user_ids.values() for u in ids]
            if user_ids:
                results = await asyncio.gather(
                    *(self.connector.get_user_tournaments(u, 1, 15) for u in user_ids),
                    return_exceptions=True,
                )
                for uid, res in zip(user_ids, results):
                    if isinstance(res, Exception):
                        logger.warning("start.gg tournaments for user %s failed: %s", uid, res)
                        continue
                    add(res)

            slugs = [s for items in self.settings.startgg_tracked_slugs.values() for s in items]
            if slugs:
                results = await asyncio.gather(
                    *(self.connector.get_tournament_by_slug(s) for s in slugs),
                    return_exceptions=True,
                )
                for slug, res in zip(slugs, results):
                    if isinstance(res, Exception):
                        logger.warning("start.gg tournament %s failed: %s", slug, res)
                        continue
                    add([res])

            if self.settings.startgg_browse_by_videogame:
                add(await self._browse())

            logger.info("start.gg tournaments found: %d", len(found))
            return found

        return await self.cache.get_or_load("sgg-raw", CACHE_TTL, load)

    async def _browse(self) -> List[Dict[str, Any]]:
        ids = list(self.settings.startgg_videogame_ids.values())
        try:
            upcoming, past = await asyncio.gather(
                self.connector.get_upcoming_tournaments(ids),
                self.connector.get_past_tournaments(ids),
            )
        except ConnectorError as exc:
            logger.warning("start.gg videogame browse failed: %s", exc)
            return []
        minimum = self.settings.startgg_min_attendees
        items = upcoming["tournaments"] + past["tournaments"]
        return [t for t in items if (t.get("numAttendees") or 0) >= minimum]

    async def _mapped(self, state: Optional[int] = None) -> List[Tournament]:
        out = []
        for raw in await self._org_tournaments():
            if state is not None and raw.get("state") != state:
                continue
            t = self.map_tournament(raw)
            if t is not None:
                out.append(await self.enrich_participants(t, raw))
        return out

    async def _guarded(self, key: str, ttl: float, loader) -> List[Tournament]:
        if not self.enabled:
            return []
        try:
            return await self.cache.get_or_load(key, ttl, loader)
        except (ConnectorError, ValueError) as exc:
            logger.warning("start.gg %s failed: %s", key, exc)
            return []

    async def fetch_upcoming(self) -> List[Tournament]:
        async def load():
            return sorted(await self._mapped(1), key=lambda t: t.start_date)
        return await self._guarded("sgg-upcoming", CACHE_TTL, load)

    async def fetch_live(self) -> List[Tournament]:
        async def load():
            return await self._mapped(2)
        return await self._guarded("sgg-live", LIVE_TTL, load)

    async def fetch_past(self) -> List[Tournament]:
        async def load():
            return sorted(await self._mapped(3), key=lambda t: t.start_date, reverse=True)
        return await self._guarded("sgg-past", CACHE_TTL, load)

    async def fetch_by_team(self, team_id: str) -> List[Tournament]:
        game = {"static-tft": "tft", "static-pokemon": "pokemon_vgc"}.get(team_id)
        if game is None:
            return []

        async def load():
            items = [t for t in await self._mapped() if t.game == game]
            return sorted(items, key=lambda t: t.start_date, reverse=True)
        return await self._guarded(f"sgg-team-{team_id}", CACHE_TTL, load)
