"""Aggregation service: one object that owns every source, the cache and
the discovered team ids.

Sources:
- PandaScore: League of Legends, Valorant and Call of Duty teams and matches
- Liquipedia: TFT and Pokémon VGC tournaments, CoD per-map enrichment
- start.gg: TFT and Pokémon VGC tournaments, when players or slugs are tracked
- curated data: static rosters and a hand-maintained tournament list

Public query methods never raise for transport or parse failures. A source
that fails is logged and contributes nothing, so callers see partial or
empty results instead of errors.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from koi_feed.cod_enrichment import CodEnricher
from koi_feed.config import MIN_ROSTER_SIZE, Settings, load_settings
from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.errors import ConnectorError
from koi_feed.connectors.liquipedia_connector import LiquipediaConnector, host_class
from koi_feed.connectors.pandascore_connector import PandaScoreConnector
from koi_feed.connectors.rate_limit import RateLimiter
from koi_feed.connectors.startgg_connector import StartGGConnector
from koi_feed.data.curated_tournaments import curated_tournament, curated_tournaments
from koi_feed.data.static_teams import SOCIAL_LINKS, static_team, static_teams
from koi_feed.models import (
    GAME_LABELS,
    DraftBan,
    DraftPick,
    DraftPlayerStats,
    DraftTeamDetails,
    Match,
    MatchDraft,
    MatchGame,
    MatchMap,
    MatchTeam,
    Player,
    Team,
    Tournament,
)
from koi_feed.normalize import is_org_team_name, standing_label
from koi_feed.startgg_service import StartGGService
from koi_feed.tournament_scraper import TournamentScraper, dedupe_by_name

logger = logging.getLogger(__name__)

CACHE_TTL = 2 * 60
LIVE_TTL = 30
TEAM_IDS_TTL = 10 * 60
PLAYER_TTL = 5 * 60

TEAM_IDS_KEY = "ds-org-teams"

DISCOVERY_ATTEMPTS = 3
DISCOVERY_BACKOFF = 2.0
STANDINGS_BATCH = 5
COD_ENRICH_TIMEOUT = 8.0

SOURCE_ERRORS = (ConnectorError, httpx.HTTPError, ValueError)

TEAM_LOGO_PLACEHOLDER = "https://via.placeholder.com/200x200?text=KOI"
PHOTO_PLACEHOLDER = "https://via.placeholder.com/200x200?text={}"

PANDA_GAMES: Dict[str, str] = {
    "league-of-legends": "league_of_legends",
    "LoL": "league_of_legends",
    "valorant": "valorant",
    "Valorant": "valorant",
    "cod-mw": "call_of_duty",
    "Call of Duty": "call_of_duty",
}

PLAYOFF_STAGE_RE = re.compile(r"playoff|knockout|bracket|final", re.IGNORECASE)
DESCRIPTIVE_MATCH_RE = re.compile(r"final|semi|quarter|decider|bracket|round", re.IGNORECASE)
PLAYOFF_MATCH_RE = re.compile(r"playoff|knockout|bracket|final|semi|quarter|decider|round", re.IGNORECASE)
REGULAR_STAGE_RE = re.compile(r"regular|group|split|season", re.IGNORECASE)

GAME_STATUS = {"running": "live", "finished": "finished"}

UpcomingHook = Callable[[List[Match]], Any]


# Mapping helpers


def game_from_slug(slug: Optional[str]) -> Optional[str]:
    return PANDA_GAMES.get(slug or "")


def map_status(status: Optional[str]) -> str:
    return GAME_STATUS.get(status or "", "upcoming")


def map_player(p: Dict[str, Any]) -> Player:
    nickname = p.get("name") or p.get("slug") or ""
    return Player(
        id=str(p.get("id")),
        nickname=nickname,
        first_name=p.get("first_name") or "",
        last_name=p.get("last_name") or "",
        role=p.get("role") or "Player",
        nationality=(p.get("nationality") or "").upper() or "N/A",
        photo_url=p.get("image_url") or PHOTO_PLACEHOLDER.format(quote(nickname)),
        age=p.get("age") or None,
    )


def map_team(t: Dict[str, Any]) -> Optional[Team]:
    """Team from a PandaScore team payload; None for unknown games or thin rosters."""
    videogame = t.get("current_videogame") or {}
    game = game_from_slug(videogame.get("slug"))
    if game is None:
        return None
    players = t.get("players") or []
    if len(players) < MIN_ROSTER_SIZE[game]:
        return None
    name = t.get("name") or ""
    return Team(
        id=f"panda-{t.get('id')}",
        name=name,
        game=game,
        logo_url=t.get("image_url") or TEAM_LOGO_PLACEHOLDER,
        description=f"{name} — equipo profesional de {videogame.get('name') or game} de Movistar KOI.",
        members=[map_player(p) for p in players],
        social_links=dict(SOCIAL_LINKS),
    )


def tournament_label(m: Dict[str, Any]) -> str:
    league = (m.get("league") or {}).get("name")
    serie = m.get("serie") or {}
    parts = [p for p in (league, serie.get("full_name") or serie.get("name")) if p]
    if parts:
        return " — ".join(parts)
    return (m.get("tournament") or {}).get("name") or "Unknown Tournament"


def match_type(m: Dict[str, Any]) -> Optional[str]:
    """Stage name, or the match's own name ("Grand Final") inside playoff stages."""
    stage = (m.get("tournament") or {}).get("name")
    name = m.get("name") or ""
    if stage and PLAYOFF_STAGE_RE.search(stage) and DESCRIPTIVE_MATCH_RE.search(name):
        return name
    return stage or None


def stream_url(m: Dict[str, Any]) -> Optional[str]:
    streams = m.get("streams_list") or []
    stream = next((s for s in streams if s.get("main")), streams[0] if streams else None)
    return (stream or {}).get("raw_url") or (m.get("live") or {}).get("url") or None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _tag(team: Dict[str, Any]) -> str:
    return team.get("acronym") or (team.get("name") or "")[:3].upper()


def _match_team(team: Dict[str, Any], score: Optional[int]) -> MatchTeam:
    return MatchTeam(
        id=f"panda-{team.get('id')}",
        name=team.get("name") or "",
        tag=_tag(team),
        logo_url=team.get("image_url") or "",
        score=score,
    )


def orient(first: Dict[str, Any], second: Dict[str, Any], org_ids: Iterable[int], aliases: Sequence[str] = ("KOI",)):
    """Return (org, opponent) for a two-team match.

    Discovered ids decide first. Without an id hit the organization is
    recognised by name; failing both, the first listed team is kept.
    """
    ids = set(org_ids)
    if first.get("id") in ids:
        return first, second
    if second.get("id") in ids:
        return second, first
    if not is_org_team_name(first.get("name"), aliases) and is_org_team_name(second.get("name"), aliases):
        return second, first
    return first, second


def map_match(
    m: Dict[str, Any],
    org_ids: Iterable[int],
    tz: ZoneInfo,
    aliases: Sequence[str] = ("KOI",),
) -> Optional[Match]:
    """Match from a PandaScore match payload, oriented organization-first."""
    game = game_from_slug((m.get("videogame") or {}).get("slug"))
    if game is None:
        return None
    opponents = [o.get("opponent") for o in m.get("opponents") or [] if o.get("opponent")]
    if len(opponents) < 2:
        return None

    org, other = orient(opponents[0], opponents[1], org_ids, aliases)
    scores = {r.get("team_id"): r.get("score") for r in m.get("results") or []}

    when = parse_timestamp(m.get("scheduled_at") or m.get("begin_at")) or datetime.now(tz)
    local = when.astimezone(tz)

    return Match(
        id=f"panda-match-{m.get('id')}",
        team_id=f"panda-{org.get('id')}",
        game=game,
        tournament=tournament_label(m),
        match_type=match_type(m),
        date=local.date().isoformat(),
        time=local.strftime("%H:%M"),
        status=map_status(m.get("status")),
        home_team=_match_team(org, scores.get(org.get("id"))),
        away_team=_match_team(other, scores.get(other.get("id"))),
        best_of=m.get("number_of_games") or 1,
        stream_url=stream_url(m),
        tournament_id=(m.get("tournament") or {}).get("id"),
        serie_id=(m.get("serie") or {}).get("id"),
        org_team_id=org.get("id"),
        opponent_team_id=other.get("id"),
    )


def map_games(m: Dict[str, Any]) -> List[MatchGame]:
    games = []
    for i, g in enumerate(sorted(m.get("games") or [], key=lambda g: g.get("position") or 0)):
        winner = (g.get("winner") or {}).get("id")
        games.append(MatchGame(
            id=str(g.get("id")),
            number=g.get("position") or i + 1,
            status=map_status(g.get("status")),
            winner_id=f"panda-{winner}" if winner is not None else None,
            length=g.get("length"),
            begin_at=g.get("begin_at"),
        ))
    return games


# Draft mapping for LoL and Valorant game payloads


def _champion(entry: Any) -> Dict[str, Any]:
    if isinstance(entry, dict):
        return entry
    return {"id": entry, "name": str(entry)}


def _team_id_of(entry: Dict[str, Any]) -> Any:
    return (entry.get("team") or {}).get("id", entry.get("team_id"))


def _side_details(game: Dict[str, Any], team_id: Any, pick_key: str) -> Optional[DraftTeamDetails]:
    side_entry = next((t for t in game.get("teams") or [] if _team_id_of(t) == team_id), None)
    players = [p for p in game.get("players") or [] if _team_id_of(p) == team_id]
    if side_entry is None and not players:
        return None

    picks = []
    for p in players:
        champ = p.get(pick_key) or {}
        if not champ:
            continue
        picks.append(DraftPick(
            champion_id=str(champ.get("id")),
            champion_name=champ.get("name") or "",
            champion_image_url=champ.get("image_url"),
            player_id=str((p.get("player") or {}).get("id", p.get("player_id"))),
            stats=DraftPlayerStats(
                kills=p.get("kills") or 0,
                deaths=p.get("deaths") or 0,
                assists=p.get("assists") or 0,
                cs=p.get("minions_killed"),
                gold=p.get("gold_earned"),
            ),
        ))

    bans = []
    for b in (side_entry or {}).get("bans") or []:
        champ = _champion(b)
        bans.append(DraftBan(
            champion_id=str(champ.get("id")),
            champion_name=champ.get("name") or "",
            champion_image_url=champ.get("image_url"),
        ))

    side = (side_entry or {}).get("color") or (side_entry or {}).get("first_half") or (side_entry or {}).get("side")
    return DraftTeamDetails(picks=picks, bans=bans, side=side)


def map_draft(game: Dict[str, Any], home_id: Any, away_id: Any, kind: str) -> Optional[MatchDraft]:
    """Draft for one game, home and away as given by the match orientation."""
    pick_key = "champion" if kind == "league_of_legends" else "agent"
    home = _side_details(game, home_id, pick_key)
    away = _side_details(game, away_id, pick_key)
    if home is None and away is None:
        return None
    return MatchDraft(home_team_details=home, away_team_details=away)


def map_game_map(game: Dict[str, Any]) -> Optional[MatchMap]:
    raw = game.get("map") or {}
    if not raw.get("name"):
        return None
    return MatchMap(id=str(raw.get("id") or raw["name"]), name=raw["name"], image_url=raw.get("image_url"))


def _numeric_id(value: str, prefix: str) -> Optional[int]:
    if not value.startswith(prefix):
        return None
    try:
        return int(value[len(prefix):])
    except ValueError:
        return None


def _chunks(items: Sequence[Any], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class DataService:
    """Process-wide aggregation service.

    Owns the TTL cache, the discovered organization team ids and the
    in-flight discovery task. Construct one per process and share it.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pandascore: Optional[PandaScoreConnector] = None,
        liquipedia: Optional[LiquipediaConnector] = None,
        startgg: Optional[StartGGConnector] = None,
        cache: Optional[TTLCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
        on_upcoming_changed: Optional[UpcomingHook] = None,
    ):
        self.settings = settings or load_settings()
        self.cache = cache or TTLCache()
        self.pandascore = pandascore or PandaScoreConnector(
            token=self.settings.pandascore_token,
            base_url=self.settings.pandascore_base_url,
        )
        self.liquipedia = liquipedia or LiquipediaConnector(
            self.settings.liquipedia_user_agent,
            rate_limiter=RateLimiter(min_interval=2.0, intervals={host_class("callofduty"): 2.5}),
        )
        self.startgg = startgg or StartGGConnector(
            token=self.settings.startgg_token,
            api_url=self.settings.startgg_api_url,
        )
        self.scraper = TournamentScraper(self.liquipedia, self.settings, self.cache, today=today)
        self.cod = CodEnricher(self.liquipedia, self.settings, self.cache)
        self.sgg = StartGGService(self.startgg, self.settings, self.cache)
        self.tz = ZoneInfo(self.settings.timezone)
        self.on_upcoming_changed = on_upcoming_changed

        self.org_teams: List[Dict[str, Any]] = []
        self.team_ids: List[int] = []
        self._discovery: Optional[asyncio.Task] = None
        self._sleep = sleep
        self._upcoming_ids: Optional[frozenset] = None

    # Identity discovery

    async def ensure_team_ids(self) -> List[int]:
        """Discovered PandaScore team ids, running at most one discovery at a time."""
        if not self.settings.pandascore_enabled:
            return []
        cached = self.cache.get(TEAM_IDS_KEY, TEAM_IDS_TTL)
        if cached is not None:
            self._store_teams(cached)
            return self.team_ids
        if self._discovery is None:
            self._discovery = asyncio.ensure_future(self._discover())
        return await asyncio.shield(self._discovery)

    def _store_teams(self, teams: List[Dict[str, Any]]) -> None:
        self.org_teams = teams
        self.team_ids = [t["id"] for t in teams if t.get("id") is not None]

    async def _discover(self) -> List[int]:
        try:
            delay = DISCOVERY_BACKOFF
            for attempt in range(1, DISCOVERY_ATTEMPTS + 1):
                try:
                    teams = await self.pandascore.find_org_teams(self.settings.org_aliases)
                except SOURCE_ERRORS as exc:
                    logger.warning("Team discovery attempt %d/%d failed: %s", attempt, DISCOVERY_ATTEMPTS, exc)
                    if attempt < DISCOVERY_ATTEMPTS:
                        await self._sleep(delay)
                        delay *= 2
                    continue
                self._store_teams(teams)
                self.cache.set(TEAM_IDS_KEY, teams)
                logger.info("Discovered %d organization teams on PandaScore", len(self.team_ids))
                return self.team_ids

            logger.warning("Team discovery gave up; match queries stay empty until refresh")
            self._store_teams([])
            self.cache.set(TEAM_IDS_KEY, [])
            return []
        finally:
            self._discovery = None

    async def refresh_team_ids(self) -> List[int]:
        self.cache.clear(TEAM_IDS_KEY)
        return await self.ensure_team_ids()

    # Teams

    async def _resolve_division(self, team: Team) -> None:
        fallback = GAME_LABELS.get(team.game, team.game)
        panda_id = _numeric_id(team.id, "panda-")
        if panda_id is None:
            return
        try:
            for fetch in (self.pandascore.get_past_matches, self.pandascore.get_upcoming_matches):
                recent = await fetch([panda_id], per_page=1)
                league = ((recent[0] if recent else {}).get("league") or {}).get("name")
                if league:
                    team.division = league
                    return
        except SOURCE_ERRORS as exc:
            logger.warning("Division lookup failed for %s: %s", team.id, exc)
        team.division = fallback

    async def resolve_divisions(self, teams: Sequence[Team]) -> None:
        """Fill each team's division from its latest league, one task per team."""
        await asyncio.gather(*(self._resolve_division(t) for t in teams))

    async def get_all_teams(self) -> List[Team]:
        async def load() -> List[Team]:
            api_teams: List[Team] = []
            if self.settings.pandascore_enabled:
                await self.ensure_team_ids()
                api_teams = [t for t in (map_team(raw) for raw in self.org_teams) if t is not None]
                await self.resolve_divisions(api_teams)
            return [*api_teams, *static_teams()]

        return await self.cache.get_or_load("ds-all-teams", CACHE_TTL, load)

    async def get_team(self, team_id: str) -> Optional[Team]:
        team = static_team(team_id)
        if team is not None:
            return team
        panda_id = _numeric_id(team_id, "panda-")
        if panda_id is None or not self.settings.pandascore_enabled:
            return None

        async def load() -> Optional[Team]:
            try:
                raw = await self.pandascore.get_team(panda_id)
            except SOURCE_ERRORS as exc:
                logger.warning("Team %s lookup failed: %s", panda_id, exc)
                return None
            found = map_team(raw)
            if found is not None:
                await self._resolve_division(found)
            return found

        return await self.cache.get_or_load(f"ds-team-{panda_id}", CACHE_TTL, load, store_empty=False)

    async def get_player(self, player_id: str, team_id: str) -> Optional[Player]:
        if team_id.startswith("static-"):
            team = static_team(team_id)
            return next((p for p in team.members if p.id == player_id), None) if team else None
        if not team_id.startswith("panda-") or not self.settings.pandascore_enabled:
            return None
        try:
            numeric = int(player_id)
        except ValueError:
            return None

        async def load() -> Optional[Player]:
            try:
                return map_player(await self.pandascore.get_player(numeric))
            except SOURCE_ERRORS as exc:
                logger.warning("Player %s lookup failed: %s", numeric, exc)
                return None

        return await self.cache.get_or_load(f"ds-player-{numeric}", PLAYER_TTL, load, store_empty=False)

    # Standings

    async def _standings_for(self, tournament_id: int, matches: List[Match]) -> None:
        target = tournament_id
        first = matches[0]
        if first.serie_id and PLAYOFF_MATCH_RE.search(first.match_type or ""):
            try:
                stages = await self.pandascore.get_serie_tournaments(first.serie_id)
            except SOURCE_ERRORS as exc:
                logger.debug("Serie %s stages unavailable: %s", first.serie_id, exc)
                stages = []
            regular = next((
                s for s in stages or []
                if REGULAR_STAGE_RE.search(s.get("name") or "") and not PLAYOFF_STAGE_RE.search(s.get("name") or "")
            ), None)
            if regular is not None:
                target = regular.get("id", target)

        try:
            standings = await self.pandascore.get_tournament_standings(target)
        except SOURCE_ERRORS as exc:
            logger.debug("Standings for %s unavailable: %s", target, exc)
            return
        if not standings:
            return

        total = len(standings)
        ranks = {(s.get("team") or {}).get("id"): s.get("rank") for s in standings}
        for m in matches:
            if ranks.get(m.org_team_id) is not None:
                m.standing = standing_label(ranks[m.org_team_id], total)
            if ranks.get(m.opponent_team_id) is not None:
                m.opponent_standing = standing_label(ranks[m.opponent_team_id], total)

    async def resolve_standings(self, matches: Sequence[Match]) -> None:
        """Attach "rank / total" labels per tournament, five tournaments at a time."""
        groups: Dict[int, List[Match]] = {}
        for m in matches:
            if m.tournament_id:
                groups.setdefault(m.tournament_id, []).append(m)
        for batch in _chunks(list(groups.items()), STANDINGS_BATCH):
            await asyncio.gather(*(self._standings_for(tid, ms) for tid, ms in batch))

    # Matches

    def _map_all(self, raw: Iterable[Dict[str, Any]], org_ids: Iterable[int]) -> List[Match]:
        ids = list(org_ids)
        out = []
        for m in raw or []:
            mapped = map_match(m, ids, self.tz, self.settings.org_aliases)
            if mapped is not None:
                out.append(mapped)
        return out

    async def _panda_matches(self, fetch, label: str, standings: bool, **kwargs) -> List[Match]:
        if not self.settings.pandascore_enabled:
            return []
        ids = await self.ensure_team_ids()
        if not ids:
            return []
        try:
            raw = await fetch(ids, **kwargs)
        except SOURCE_ERRORS as exc:
            logger.warning("PandaScore %s matches failed: %s", label, exc)
            return []
        matches = self._map_all(raw, ids)
        if standings:
            await self.resolve_standings(matches)
        logger.info("PandaScore %s matches: %d", label, len(matches))
        return matches

    async def get_upcoming_matches(self) -> List[Match]:
        async def load() -> List[Match]:
            matches = await self._panda_matches(self.pandascore.get_upcoming_matches, "upcoming", True)
            matches = sorted(matches, key=lambda m: (m.date, m.time))
            await self._notify_upcoming(matches)
            return matches

        return await self.cache.get_or_load("ds-upcoming-matches", CACHE_TTL, load)

    async def _notify_upcoming(self, matches: List[Match]) -> None:
        ids = frozenset(m.id for m in matches)
        if ids == self._upcoming_ids:
            return
        self._upcoming_ids = ids
        if self.on_upcoming_changed is None:
            return
        try:
            await asyncio.to_thread(self.on_upcoming_changed, matches)
        except Exception as exc:
            logger.warning("Upcoming-changed hook failed: %s", exc)

    async def get_live_matches(self) -> List[Match]:
        async def load() -> List[Match]:
            return await self._panda_matches(self.pandascore.get_running_matches, "live", False)

        return await self.cache.get_or_load("ds-live-matches", LIVE_TTL, load)

    async def get_past_matches(self) -> List[Match]:
        async def load() -> List[Match]:
            matches = await self._panda_matches(self.pandascore.get_past_matches, "past", True, per_page=50)
            return sorted(matches, key=lambda m: (m.date, m.time), reverse=True)

        return await self.cache.get_or_load("ds-past-matches", CACHE_TTL, load)

    async def get_team_matches(self, team_id: str) -> List[Match]:
        """Live, upcoming and recent matches of one team.

        Static teams (TFT, Pokémon) play tournaments rather than matches and
        always get an empty list.
        """
        panda_id = _numeric_id(team_id, "panda-")
        if panda_id is None or not self.settings.pandascore_enabled:
            return []

        async def load() -> List[Match]:
            try:
                upcoming, live, past = await asyncio.gather(
                    self.pandascore.get_upcoming_matches([panda_id], per_page=5),
                    self.pandascore.get_running_matches([panda_id]),
                    self.pandascore.get_past_matches([panda_id], per_page=50),
                )
            except SOURCE_ERRORS as exc:
                logger.warning("Matches for team %s failed: %s", panda_id, exc)
                return []
            return self._map_all([*live, *upcoming, *past], [panda_id])

        return await self.cache.get_or_load(f"ds-team-matches-{panda_id}", CACHE_TTL, load)

    async def _with_draft(self, game: MatchGame, match: Match) -> MatchGame:
        fetch = (
            self.pandascore.get_lol_game if match.game == "league_of_legends"
            else self.pandascore.get_valorant_game
        )
        try:
            detail = await fetch(int(game.id))
        except SOURCE_ERRORS as exc:
            logger.debug("Game %s detail unavailable: %s", game.id, exc)
            return game
        game.draft = map_draft(detail, match.org_team_id, match.opponent_team_id, match.game)
        if game.map is None:
            game.map = map_game_map(detail)
        return game

    async def _enrich_games(self, match: Match, games: List[MatchGame]) -> List[MatchGame]:
        if match.game in ("league_of_legends", "valorant"):
            targets = [g for g in games if g.status != "upcoming"]
            await asyncio.gather(*(self._with_draft(g, match) for g in targets))
            return games
        if match.game == "call_of_duty":
            try:
                return await asyncio.wait_for(
                    self.cod.enrich_games(games, match.home_team.name, match.away_team.name, match.date),
                    COD_ENRICH_TIMEOUT,
                )
            except asyncio.TimeoutError:
                logger.warning("CoD enrichment timed out for %s", match.id)
            except SOURCE_ERRORS as exc:
                logger.warning("CoD enrichment failed for %s: %s", match.id, exc)
        return games

    async def get_match(self, match_id: str) -> Optional[Match]:
        """One match with its games, drafts (LoL, Valorant) or maps (CoD)."""
        numeric = _numeric_id(match_id, "panda-match-")
        if numeric is None or not self.settings.pandascore_enabled:
            return None

        async def load() -> Optional[Match]:
            try:
                raw = await self.pandascore.get_match(numeric)
            except SOURCE_ERRORS as exc:
                logger.warning("Match %s lookup failed: %s", numeric, exc)
                return None
            ids = await self.ensure_team_ids()
            match = map_match(raw, ids, self.tz, self.settings.org_aliases)
            if match is None:
                return None
            match.games = await self._enrich_games(match, map_games(raw))
            return match

        return await self.cache.get_or_load(f"ds-match-{numeric}", CACHE_TTL, load, store_empty=False)

    # Tournaments

    async def _sgg_by_status(self, status: str) -> List[Tournament]:
        if status == "upcoming":
            return await self.sgg.fetch_upcoming()
        if status == "live":
            return await self.sgg.fetch_live()
        return await self.sgg.fetch_past()

    async def _tournaments(self, status: str) -> List[Tournament]:
        """Wiki first, curated for upcoming gaps, then start.gg; first name wins.

        When the wiki yields nothing at all the curated dataset is returned
        as-is for the status.
        """
        async def load() -> List[Tournament]:
            wiki = await self.scraper.fetch_all()
            if not wiki:
                logger.warning("No wiki tournaments; serving curated %s tournaments", status)
                return curated_tournaments(status)

            merged = [t for t in wiki if t.status == status]
            if status == "upcoming":
                merged.extend(curated_tournaments("upcoming"))
            merged.extend(await self._sgg_by_status(status))
            merged = dedupe_by_name(merged)
            return sorted(merged, key=lambda t: t.start_date, reverse=(status == "finished"))

        ttl = LIVE_TTL if status == "live" else CACHE_TTL
        return await self.cache.get_or_load(f"ds-tournaments-{status}", ttl, load)

    async def get_upcoming_tournaments(self) -> List[Tournament]:
        return await self._tournaments("upcoming")

    async def get_live_tournaments(self) -> List[Tournament]:
        return await self._tournaments("live")

    async def get_past_tournaments(self) -> List[Tournament]:
        return await self._tournaments("finished")

    async def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        for status in ("live", "upcoming", "finished"):
            for t in await self._tournaments(status):
                if t.id == tournament_id:
                    return t
        return curated_tournament(tournament_id)

    async def get_tournaments_by_team(self, team_id: str) -> List[Tournament]:
        team = static_team(team_id)
        if team is None:
            return []

        async def load() -> List[Tournament]:
            wiki = await self.scraper.fetch_by_game(team.game)
            if not wiki:
                wiki = [t for t in curated_tournaments() if t.team_id == team_id]
            merged = dedupe_by_name([*wiki, *await self.sgg.fetch_by_team(team_id)])
            return sorted(merged, key=lambda t: t.start_date, reverse=True)

        return await self.cache.get_or_load(f"ds-team-tournaments-{team_id}", CACHE_TTL, load)

    # Housekeeping

    def clear_cache(self) -> None:
        """Drop every cached entry, including discovered ids."""
        self.cache.clear()
        self._upcoming_ids = None

    async def close(self) -> None:
        await asyncio.gather(self.pandascore.close(), self.liquipedia.close(), self.startgg.close())
