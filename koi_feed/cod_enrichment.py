"""Call of Duty match enrichment from the Liquipedia CoD wiki.

PandaScore gives teams, series score, game count and schedule for CDL
matches; this module adds map name, game mode (HP/S&D/CTL) and per-map
scores.

Where the data comes from:
- CDL season and stage pages carry bracket popups for many matches at once,
  so they are fetched first and cached as one bundle.
- When the bundle has no match for the requested pairing, the organization's
  team page is scanned for match-page links naming the opponent.

Map data inside a page is read by three strategies tried in order: bracket
popup game blocks, a wikitable map summary, and inline "Map N: Mode on Map
(S1-S2)" text. The first strategy that yields anything wins.

Caching: team page links 4 hours, per-match map data 24 hours, season
bundle 6 hours.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence, Tuple

from koi_feed.config import COD_GAME_MODES, LIQUIPEDIA_BASE, Settings
from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.html_parse import (
    decode_entities,
    extract_balanced_blocks,
    iter_rows,
    iter_tables,
    row_cells,
    strip_tags,
)
from koi_feed.connectors.liquipedia_connector import LiquipediaConnector
from koi_feed.models import MatchGame, MatchMap
from koi_feed.normalize import names_match, normalize_name

logger = logging.getLogger(__name__)

WIKI = "callofduty"

TEAM_PAGE_TTL = 4 * 60 * 60
MATCH_DETAIL_TTL = 24 * 60 * 60
TOURNAMENT_PAGE_TTL = 6 * 60 * 60

STAGE_SUBPAGES = ("Major_1", "Major_2", "Major_3", "Stage_1", "Stage_2", "Stage_3")

KNOWN_MAPS = [
    "Karachi", "Terminal", "Skidrow", "Invasion", "Highrise", "Sub Base",
    "Hacienda", "Rewind", "Vault", "Protocol", "Red Card",
    "Babylon", "Payback", "Nuketown", "Skyline", "Striker",
    "Athens", "Hideout", "Warhead", "Departures", "Compound",
]

_MODE_PATTERNS = [
    re.compile(r"\b(Hardpoint|HP)\b", re.IGNORECASE),
    re.compile(r"\b(Search\s*(?:&|and)\s*Destroy|S&D|SnD|SND)\b", re.IGNORECASE),
    re.compile(r"\b(Control|CTL)\b", re.IGNORECASE),
]
_MAP_LINK_RE = re.compile(
    r'<a\s+[^>]*href="/callofduty/([^"]*)"[^>]*title="([^"]*)"[^>]*>([^<]+)</a>', re.IGNORECASE
)
_DATA_MODE_RE = re.compile(r'data-mode="([^"]+)"', re.IGNORECASE)
_SCORE_CLASS_RE = re.compile(
    r'class="[^"]*(?:brkts-popup-body-game-team|score)[^"]*"[^>]*>\s*(\d+)\s*<', re.IGNORECASE
)
_SIMPLE_SCORE_RE = re.compile(r"<(?:div|span|td)[^>]*>\s*(\d{1,3})\s*</(?:div|span|td)>", re.IGNORECASE)
_INLINE_MAP_RE = re.compile(
    r"(?:Map|Game|Mapa)\s*(\d)?\s*:?\s*"
    r"(Hardpoint|HP|Search\s*(?:&|and)\s*Destroy|S&D|SnD|Control|CTL)\s+"
    r"(?:on\s+)?([A-Za-z\s]+?)\s*\(?(\d+)\s*[-–]\s*(\d+)\)?",
    re.IGNORECASE,
)
_POPUP_SPLIT_RE = re.compile(r'(?=<div[^>]*class="[^"]*brkts-popup(?!-))', re.IGNORECASE)
_ANCHOR_TEXT_RE = re.compile(r"<a[^>]*>([^<]+)</a>", re.IGNORECASE)
_OPPONENT_SPAN_RE = re.compile(
    r'class="[^"]*(?:brkts-popup-header-opponent|team-template-text)[^"]*"[^>]*>[^<]*<a[^>]*>([^<]+)</a>',
    re.IGNORECASE,
)
_SERIES_SCORE_RE = re.compile(
    r'class="[^"]*brkts-popup-header-score[^"]*"[^>]*>\s*(\d+)\s*:\s*(\d+)', re.IGNORECASE
)
_ROW_MATCH_LINK_RE = re.compile(r'href="(/callofduty/[^"]*(?:vs|_v_)[^"]*)"[^>]*>', re.IGNORECASE)

MODE_NAMES = ("Hardpoint", "Search & Destroy", "Control")
_FULL_MODES = {"HP": "Hardpoint", "S&D": "Search & Destroy", "CTL": "Control"}


@dataclass
class CodMapData:
    game_number: int
    map_name: str
    game_mode: str
    game_mode_short: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    winner: Optional[str] = None  # "home" / "away"


@dataclass
class CodMatchDetail:
    team1: str
    team2: str
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    maps: List[CodMapData] = field(default_factory=list)


def normalize_game_mode(raw: str) -> Tuple[str, str]:
    """Return (full name, short label) for a mode string."""
    cleaned = raw.strip()
    if cleaned in COD_GAME_MODES:
        short = COD_GAME_MODES[cleaned]
        return _FULL_MODES[short], short

    lower = cleaned.lower()
    if "hardpoint" in lower or lower == "hp":
        return "Hardpoint", "HP"
    if "search" in lower or "s&d" in lower or lower == "snd":
        return "Search & Destroy", "S&D"
    if "control" in lower or lower == "ctl":
        return "Control", "CTL"
    return cleaned, cleaned[:3].upper()


def is_reasonable_score(value: int, mode: str) -> bool:
    if value == 0:
        return True
    mode = mode.lower()
    if mode in ("hardpoint", "hp"):
        return 1 <= value <= 250
    if mode in ("search & destroy", "search and destroy", "s&d", "snd"):
        return 0 <= value <= 6
    if mode in ("control", "ctl"):
        return 0 <= value <= 3
    return 0 <= value <= 250


def _winner(home: Optional[int], away: Optional[int]) -> Optional[str]:
    if home is None or away is None:
        return None
    if home > away:
        return "home"
    if away > home:
        return "away"
    return None


def _map_data(number: int, map_name: str, mode: str, home: Optional[int], away: Optional[int]) -> CodMapData:
    full, short = normalize_game_mode(mode) if mode else ("Unknown", "?")
    return CodMapData(
        game_number=number,
        map_name=map_name or "Unknown Map",
        game_mode=full,
        game_mode_short=short,
        home_score=home,
        away_score=away,
        winner=_winner(home, away),
    )


def parse_game_block(block: str, number: int, org_name: str = "KOI") -> Optional[CodMapData]:
    """Map, mode and scores from one `brkts-popup-body-game` block.

    A block with neither a map nor a mode is not a game and yields None.
    """
    map_name = ""
    link = _MAP_LINK_RE.search(block)
    if link:
        map_name = decode_entities(link.group(3)).strip()
        if map_name.lower() == org_name.lower() or len(map_name) < 3:
            map_name = ""

    text = strip_tags(block)
    if not map_name:
        lowered = text.lower()
        for known in KNOWN_MAPS:
            if known.lower() in lowered:
                map_name = known
                break

    mode = ""
    for pattern in _MODE_PATTERNS:
        m = pattern.search(text)
        if m:
            mode = normalize_game_mode(m.group(1))[0]
            break
    if not mode:
        m = _DATA_MODE_RE.search(block)
        if m:
            mode = normalize_game_mode(m.group(1))[0]

    scores = [int(s) for s in _SCORE_CLASS_RE.findall(block)]
    if len(scores) < 2:
        candidates = [int(v) for v in _SIMPLE_SCORE_RE.findall(block) if is_reasonable_score(int(v), mode)]
        if len(candidates) >= 2 and not scores:
            scores = candidates[:2]

    if not map_name and not mode:
        return None

    home, away = (scores[0], scores[1]) if len(scores) >= 2 else (None, None)
    return _map_data(number, map_name, mode, home, away)


def maps_from_bracket_popups(html: str) -> List[CodMapData]:
    maps = []
    for i, block in enumerate(extract_balanced_blocks(html, "brkts-popup-body-game")):
        parsed = parse_game_block(block, i + 1)
        if parsed:
            maps.append(parsed)
    return maps


def maps_from_summary_table(html: str) -> List[CodMapData]:
    """First wikitable whose header mentions a map or mode column."""
    for table in iter_tables(html, class_contains="wikitable"):
        header = strip_tags(table[:500]).lower()
        if "map" not in header and "mode" not in header:
            continue

        maps: List[CodMapData] = []
        for row in iter_rows(table, skip_hidden=False):
            cells = [strip_tags(c) for c in row_cells(row)]
            if len(cells) < 3:
                continue

            map_name, mode = "", ""
            scores: List[int] = []
            for cell in cells:
                if cell.isdigit():
                    scores.append(int(cell))
                elif len(cell) > 3:
                    full, _ = normalize_game_mode(cell)
                    if not mode and (full != cell or full in MODE_NAMES):
                        mode = full
                    elif not map_name:
                        map_name = cell

            if map_name or mode:
                home = scores[0] if len(scores) > 0 else None
                away = scores[1] if len(scores) > 1 else None
                maps.append(_map_data(len(maps) + 1, map_name, mode, home, away))

        if maps:
            return maps
    return []


def maps_from_inline_text(html: str) -> List[CodMapData]:
    maps: List[CodMapData] = []
    for m in _INLINE_MAP_RE.finditer(strip_tags(html)):
        number = int(m.group(1)) if m.group(1) else len(maps) + 1
        maps.append(_map_data(number, m.group(3).strip(), m.group(2), int(m.group(4)), int(m.group(5))))
    return maps


MAP_STRATEGIES: Sequence[Callable[[str], List[CodMapData]]] = (
    maps_from_bracket_popups,
    maps_from_summary_table,
    maps_from_inline_text,
)


def parse_match_maps(html: str) -> List[CodMapData]:
    """Run the map strategies in order; the first non-empty result wins."""
    for strategy in MAP_STRATEGIES:
        maps = strategy(html or "")
        if maps:
            return maps
    return []


def parse_tournament_page(html: str, org_name: str) -> List[CodMatchDetail]:
    """Every organization match in the bracket popups of a season/stage page."""
    matches: List[CodMatchDetail] = []
    for section in _POPUP_SPLIT_RE.split(html or ""):
        if "brkts-popup" not in section:
            continue
        if org_name not in strip_tags(section):
            continue

        team1 = team2 = ""
        headers = extract_balanced_blocks(section, "brkts-popup-header")
        if headers:
            links = _ANCHOR_TEXT_RE.findall(headers[0])
            if len(links) >= 2:
                team1, team2 = strip_tags(links[0]), strip_tags(links[-1])

        if not team1 or not team2:
            spans = _OPPONENT_SPAN_RE.findall(section)
            if len(spans) >= 2:
                team1, team2 = strip_tags(spans[0]), strip_tags(spans[1])

        if not team1 or not team2:
            continue

        score = _SERIES_SCORE_RE.search(section)
        matches.append(CodMatchDetail(
            team1=team1,
            team2=team2,
            team1_score=int(score.group(1)) if score else None,
            team2_score=int(score.group(2)) if score else None,
            maps=parse_match_maps(section),
        ))
    return matches


def parse_match_history(html: str, org_name: str) -> List[str]:
    """Match-page slugs linked from the organization's team page."""
    org = re.escape(org_name)
    link_re = re.compile(
        rf'<a\s+[^>]*href="(/callofduty/[^"]*(?:vs|_v_)[^"]*{org}[^"]*|/callofduty/[^"]*{org}[^"]*(?:vs|_v_)[^"]*)"[^>]*>([^<]*)</a>',
        re.IGNORECASE,
    )
    slugs: List[str] = []
    for m in link_re.finditer(html or ""):
        slug = decode_entities(m.group(1)).replace("/callofduty/", "", 1)
        if slug not in slugs:
            slugs.append(slug)

    for table in iter_tables(html or "", class_contains="wikitable"):
        header = strip_tags(table[:300]).lower()
        if "date" not in header and "opponent" not in header and "result" not in header:
            continue
        for row in iter_rows(table, skip_hidden=False):
            m = _ROW_MATCH_LINK_RE.search(row)
            if not m:
                continue
            slug = decode_entities(m.group(1)).replace("/callofduty/", "", 1)
            if slug not in slugs:
                slugs.append(slug)
    return slugs


def find_matching_match(
    matches: Sequence[CodMatchDetail], home: str, away: str
) -> Optional[Tuple[CodMatchDetail, bool]]:
    """Locate the bundle entry for home vs away.

    Returns (match, swapped) where swapped means the page lists the caller's
    away team as team1. Tiers are tried in order: direct orientation, swapped
    orientation, then both names anywhere in the pairing. Within a tier the
    first match in page order is taken.
    """
    direct = [m for m in matches if names_match(m.team1, home) and names_match(m.team2, away)]
    swapped = [m for m in matches if names_match(m.team1, away) and names_match(m.team2, home)]
    home_n, away_n = normalize_name(home), normalize_name(away)
    loose = [
        m for m in matches
        if home_n and away_n
        and home_n in normalize_name(f"{m.team1} {m.team2}")
        and away_n in normalize_name(f"{m.team1} {m.team2}")
    ]

    for tier, is_swapped in ((direct, False), (swapped, True), (loose, None)):
        if not tier:
            continue
        if len(tier) > 1:
            logger.warning("Ambiguous CoD match lookup for %s vs %s: %d candidates", home, away, len(tier))
        chosen = tier[0]
        if is_swapped is None:
            is_swapped = names_match(chosen.team1, away) and not names_match(chosen.team1, home)
        return chosen, is_swapped
    return None


def flip_maps(maps: Sequence[CodMapData]) -> List[CodMapData]:
    flipped = {"home": "away", "away": "home"}
    return [
        replace(m, home_score=m.away_score, away_score=m.home_score, winner=flipped.get(m.winner))
        for m in maps
    ]


def map_image_url(map_name: str) -> str:
    return f"{LIQUIPEDIA_BASE}/{WIKI}/Special:FilePath/{map_name.replace(' ', '_')}_Map_Icon.png"


class CodEnricher:
    """Fetches and caches CoD wiki pages, then merges map data into games."""

    def __init__(self, connector: LiquipediaConnector, settings: Settings, cache: Optional[TTLCache] = None):
        self.connector = connector
        self.settings = settings
        self.cache = cache or TTLCache()

    @property
    def org_name(self) -> str:
        return self.settings.org_cod_team_name

    async def fetch_season_matches(self) -> List[CodMatchDetail]:
        """Organization matches from the season page, then stage sub-pages.

        Crawling stops once more than three matches have been collected.
        """
        async def load() -> List[CodMatchDetail]:
            season = self.settings.cdl_season_page
            pages = [season] + [f"{season}/{sub}" for sub in STAGE_SUBPAGES]
            found: List[CodMatchDetail] = []
            for page in pages:
                html = await self.connector.fetch_page_html(WIKI, page)
                if not html:
                    continue
                found.extend(parse_tournament_page(html, self.org_name))
                if len(found) > 3:
                    break
            logger.info("Collected %d CoD matches from season pages", len(found))
            return found

        return await self.cache.get_or_load("lpcod-season-matches", TOURNAMENT_PAGE_TTL, load, store_empty=False)

    async def fetch_match_history(self) -> List[str]:
        async def load() -> List[str]:
            html = await self.connector.fetch_page_html(WIKI, self.org_name)
            return parse_match_history(html, self.org_name) if html else []

        return await self.cache.get_or_load("lpcod-match-history", TEAM_PAGE_TTL, load, store_empty=False)

    def _org_is(self, name: str) -> bool:
        return self.org_name.lower() in (name or "").lower()

    async def _maps_from_history(self, home: str, away: str) -> List[CodMapData]:
        org_home = self._org_is(home)
        opponent = away if org_home else home
        needle = opponent.lower().replace(" ", "_")
        for slug in await self.fetch_match_history():
            if needle not in slug.lower():
                continue
            html = await self.connector.fetch_page_html(WIKI, slug)
            if not html:
                continue
            maps = parse_match_maps(html)
            if not maps:
                continue
            # slug is "<team1>_vs_<team2>/..."; flip when the org side is listed opposite
            first = re.split(r"_vs_|_v_", slug.split("/")[0], maxsplit=1, flags=re.IGNORECASE)[0]
            org_first = self._org_is(first.replace("_", " "))
            return flip_maps(maps) if org_first != org_home else maps
        return []

    async def fetch_match_maps(self, home: str, away: str, match_date: str) -> List[CodMapData]:
        """Per-map data oriented to the caller's home/away framing; [] when unknown."""
        key = re.sub(r"\s+", "-", f"lpcod-maps-{home}-{away}-{match_date}".lower())

        async def load() -> List[CodMapData]:
            bundle = await self.fetch_season_matches()
            found = find_matching_match(bundle, home, away) if bundle else None
            if found:
                match, swapped = found
                if match.maps:
                    return flip_maps(match.maps) if swapped else list(match.maps)

            maps = await self._maps_from_history(home, away)
            if not maps:
                logger.info("No CoD map data found for %s vs %s", home, away)
            return maps

        return await self.cache.get_or_load(key, MATCH_DETAIL_TTL, load, store_empty=False)

    async def enrich_games(self, games: List[MatchGame], home: str, away: str, match_date: str) -> List[MatchGame]:
        """Fill map, mode and missing per-map scores by game number."""
        if not games:
            return games
        maps = await self.fetch_match_maps(home, away, match_date)
        if not maps:
            return games

        by_number = {m.game_number: m for m in maps}
        out: List[MatchGame] = []
        for game in games:
            lp = by_number.get(game.number)
            if lp is None:
                out.append(game)
                continue
            changes = {}
            if lp.map_name and lp.map_name != "Unknown Map":
                changes["map"] = MatchMap(
                    id="cod-map-" + re.sub(r"\s+", "-", lp.map_name.lower()),
                    name=lp.map_name,
                    image_url=map_image_url(lp.map_name),
                )
            if lp.game_mode and lp.game_mode != "Unknown":
                changes["game_mode"] = lp.game_mode
            if game.home_team_score is None and lp.home_score is not None:
                changes["home_team_score"] = lp.home_score
            if game.away_team_score is None and lp.away_score is not None:
                changes["away_team_score"] = lp.away_score
            out.append(replace(game, **changes))
        return out
