"""Liquipedia tournament scraper for TFT and Pokémon VGC.

Two page classes are read through the MediaWiki parse API:

1. Organization team pages (/tft/KOI, /pokemon/KOI): an individual
   achievements table gives date, placement, tournament, player and prize
   for past results.
2. Season/circuit pages (/tft/<season>, /pokemon/Pokemon_Championships/<year>):
   every event of the season grouped by region. Future events still show
   "TBD" as winner, which is what marks a row as upcoming.

Caching: 6 hours for results, 2 hours for upcoming events. Empty parses are
not cached so the next call retries the page.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from koi_feed.config import LIQUIPEDIA_BASE, TOURNAMENT_KEYWORDS, Settings
from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.html_parse import (
    decode_entities,
    extract_href,
    iter_rows,
    parse_placement,
    parse_prize,
    row_cells,
    strip_tags,
)
from koi_feed.connectors.liquipedia_connector import LiquipediaConnector
from koi_feed.models import Tournament, TournamentParticipant, TournamentPhase
from koi_feed.normalize import normalize_name, slugify

logger = logging.getLogger(__name__)

RESULTS_TTL = 6 * 60 * 60
UPCOMING_TTL = 2 * 60 * 60

WIKI_GAMES = {"tft": "tft", "pokemon": "pokemon_vgc"}

_ACHIEVEMENTS_TABLE_RE = re.compile(
    r'<table\s+class="wikitable\s+wikitable-striped\s+sortable"[^>]*>[\s\S]*?</table>'
)
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_ALT = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
_CONTEXT_DATE_RE = re.compile(
    rf"(?:{_MONTH_ALT})\s+\d{{1,2}}(?:\s*[–—\-]\s*(?:(?:{_MONTH_ALT})\s+)?\d{{1,2}})?,?\s*\d{{4}}",
    re.IGNORECASE,
)
_SAME_MONTH_RE = re.compile(r"([A-Za-z]+)\s+(\d{1,2})\s*-\s*(\d{1,2}),?\s*(\d{4})")
_CROSS_MONTH_RE = re.compile(r"([A-Za-z]+)\s+(\d{1,2})\s*-\s*([A-Za-z]+)\s+(\d{1,2}),?\s*(\d{4})")
_SINGLE_DAY_RE = re.compile(r"([A-Za-z]+)\s+(\d{1,2}),?\s*(\d{4})")
_PRIZE_RE = re.compile(r"\$[\d,]+")
_PARTICIPANTS_RE = re.compile(r"(\d+)\s*participants", re.IGNORECASE)

# Heading anchors that open a region section on a TFT season page
SECTION_REGIONS = [
    ("Championship", "World"),
    ("EMEA_Tournaments", "EMEA"),
    ("AMER_Tournaments", "AMER"),
    ("APAC_Tournaments", "APAC"),
    ("CN_Tournaments", "CN"),
]

LOCATION_PATTERNS = [
    ("EMEA", "Online"),
    ("AMER", "Online"),
    ("Online", "Online"),
    ("Paris", "Paris, France"),
    ("London", "London, UK"),
    ("Stuttgart", "Stuttgart, Germany"),
    ("Birmingham", "Birmingham, UK"),
    ("Stockholm", "Stockholm, Sweden"),
    ("New Orleans", "New Orleans, US"),
    ("São Paulo", "São Paulo, Brazil"),
    ("Anaheim", "Anaheim, US"),
    ("San Diego", "San Diego, US"),
    ("Yokohama", "Yokohama, Japan"),
    ("Sydney", "Sydney, Australia"),
    ("Vancouver", "Vancouver, Canada"),
]

CONTEXT_WINDOW = 800


@dataclass
class AchievementRow:
    date: str
    placement: Optional[int]
    placement_text: str
    tier: str
    tournament_name: str
    tournament_href: str
    player_name: str
    prize: float


@dataclass
class UpcomingEvent:
    name: str
    href: str
    start_date: str
    end_date: Optional[str]
    prize_pool: Optional[float]
    participants: Optional[int]
    region: str


# Parsing: team achievements page


def find_achievements_table(html: str) -> Optional[str]:
    for m in _ACHIEVEMENTS_TABLE_RE.finditer(html or ""):
        table = m.group(0)
        if ">Player<" in table:
            return table
    return None


def parse_achievement_rows(table_html: str) -> List[AchievementRow]:
    rows: List[AchievementRow] = []
    for row in iter_rows(table_html):
        cells = row_cells(row)
        if len(cells) < 6:
            continue

        day = strip_tags(cells[0])
        if not _ISO_DATE_RE.match(day):
            continue

        tournament_name = strip_tags(cells[4])
        player_name = strip_tags(cells[5])
        if not tournament_name or not player_name:
            continue

        placement_text = strip_tags(cells[1])
        rows.append(AchievementRow(
            date=day,
            placement=parse_placement(placement_text),
            placement_text=placement_text,
            tier=strip_tags(cells[2]),
            tournament_name=tournament_name,
            tournament_href=extract_href(cells[4]) or extract_href(cells[3]) or "",
            player_name=player_name,
            prize=parse_prize(strip_tags(cells[-1])),
        ))
    return rows


# Parsing: season schedule pages


def _month(abbr: str) -> Optional[int]:
    return _MONTHS.get(abbr[:3].lower())


def _iso(y: int, m: int, d: int) -> str:
    return f"{y:04d}-{m:02d}-{d:02d}"


def _match_date_range(text: str) -> Optional[Tuple[str, Optional[str]]]:
    clean = re.sub("[–—]", "-", text or "").strip()

    m = _SAME_MONTH_RE.search(clean)
    if m:
        month = _month(m.group(1))
        if month is None:
            return None
        y = int(m.group(4))
        return _iso(y, month, int(m.group(2))), _iso(y, month, int(m.group(3)))

    m = _CROSS_MONTH_RE.search(clean)
    if m:
        m1, m2 = _month(m.group(1)), _month(m.group(3))
        if m1 is None or m2 is None:
            return None
        y = int(m.group(5))
        return _iso(y, m1, int(m.group(2))), _iso(y, m2, int(m.group(4)))

    m = _SINGLE_DAY_RE.search(clean)
    if m:
        month = _month(m.group(1))
        if month is None:
            return None
        return _iso(int(m.group(3)), month, int(m.group(2))), None

    return None


def parse_date_range(text: str) -> Optional[Tuple[str, Optional[str]]]:
    """Parse "Mar 06-15, 2026", "Jan 30 - Feb 01, 2026" or "Mar 6, 2026".

    Returns (start, end) ISO dates; end is None for a single day. Impossible
    calendar dates yield None.
    """
    parsed = _match_date_range(text)
    if parsed is None:
        return None
    try:
        for d in parsed:
            if d is not None:
                date.fromisoformat(d)
    except ValueError:
        return None
    return parsed


def region_sections(html: str) -> List[Tuple[int, int, str]]:
    """(start, end, region) spans, each running until the next heading anchor."""
    bounds: List[Tuple[int, str]] = []
    for anchor, region in SECTION_REGIONS:
        for m in re.finditer(rf'id="{anchor}"', html, re.IGNORECASE):
            bounds.append((m.start(), region))
    bounds.sort()
    spans = []
    for i, (start, region) in enumerate(bounds):
        end = bounds[i + 1][0] if i + 1 < len(bounds) else len(html)
        spans.append((start, end, region))
    return spans


def _region_at(spans: Sequence[Tuple[int, int, str]], pos: int) -> str:
    for start, end, region in spans:
        if start <= pos < end:
            return region
    return "Unknown"


def _link_re(wiki: str) -> "re.Pattern[str]":
    return re.compile(
        rf'<a\s+[^>]*href="(/{wiki}/[^"]+)"[^>]*title="([^"]*)"[^>]*>([^<]+)</a>',
        re.IGNORECASE,
    )


def _event_from_context(html: str, pos: int, name: str, href: str, region: str) -> Optional[Tuple[UpcomingEvent, str]]:
    context = html[pos:pos + CONTEXT_WINDOW]
    date_match = _CONTEXT_DATE_RE.search(context)
    if not date_match:
        return None
    parsed = parse_date_range(date_match.group(0))
    if not parsed:
        return None
    start, end = parsed
    prize = _PRIZE_RE.search(context)
    participants = _PARTICIPANTS_RE.search(context)
    event = UpcomingEvent(
        name=name,
        href=href,
        start_date=start,
        end_date=end,
        prize_pool=parse_prize(prize.group(0)) if prize else None,
        participants=int(participants.group(1)) if participants else None,
        region=region,
    )
    return event, context


def parse_season_page(html: str, wiki: str, regions: Sequence[str], today: date) -> List[UpcomingEvent]:
    """Upcoming events from a season page, limited to the allowed regions.

    A row only counts as upcoming when its end date has not passed and the
    text after the link still carries a TBD winner.
    """
    html = html or ""
    spans = region_sections(html)
    keywords = [k.lower() for k in TOURNAMENT_KEYWORDS]
    seen = set()
    events: List[UpcomingEvent] = []

    for m in _link_re(wiki).finditer(html):
        href = m.group(1)
        title = decode_entities(m.group(2))
        text = decode_entities(m.group(3)).strip()

        if any(s in href for s in ("action=edit", "Category:", "Special:", "#")):
            continue
        if len(text) < 10:
            continue
        if not any(k in text.lower() for k in keywords):
            continue

        name = title or text
        key = normalize_name(name)
        if key in seen:
            continue
        seen.add(key)

        region = _region_at(spans, m.start())
        if not any(r.lower() in region.lower() for r in regions):
            continue

        found = _event_from_context(html, m.start(), name, href, region)
        if not found:
            continue
        event, context = found
        end = date.fromisoformat(event.end_date or event.start_date)
        if end >= today and "TBD" in context:
            events.append(event)

    return events


def parse_vgc_events(html: str, today: date) -> List[UpcomingEvent]:
    """Upcoming VGC events from a Pokémon championship season page."""
    html = html or ""
    seen = set()
    events: List[UpcomingEvent] = []

    for m in _link_re("pokemon").finditer(html):
        href = m.group(1)
        title = decode_entities(m.group(2))
        text = decode_entities(m.group(3)).strip()

        if "VGC" not in text and "VGC" not in href and "VGC" not in title:
            continue
        if "action=edit" in href or "Category:" in href:
            continue
        if len(text) < 10:
            continue

        name = title or text
        key = normalize_name(name)
        if key in seen:
            continue
        seen.add(key)

        found = _event_from_context(html, m.start(), name, href, "International")
        if not found:
            continue
        event, _ = found
        if date.fromisoformat(event.end_date or event.start_date) < today:
            continue
        events.append(event)

    return events


# Tournament building


def infer_status(start: str, end: Optional[str], today: date) -> str:
    start_d = date.fromisoformat(start)
    end_d = date.fromisoformat(end) if end else start_d
    if start_d > today:
        return "upcoming"
    if start_d <= today <= end_d:
        return "live"
    return "finished"


def infer_location(name: str, game: str) -> Optional[str]:
    for pattern, location in LOCATION_PATTERNS:
        if pattern in name:
            return location
    return "Online" if game == "tft" else None


def tournament_id(game: str, name: str) -> str:
    return f"lp-{'tft' if game == 'tft' else 'vgc'}-{slugify(name)}"


def static_team_id(game: str) -> str:
    return "static-tft" if game == "tft" else "static-pokemon"


def default_format(game: str) -> str:
    return "points_elimination" if game == "tft" else "swiss_to_bracket"


def default_time(game: str) -> str:
    return "18:00" if game == "tft" else "09:00"


def default_phases(game: str, status: str) -> List[TournamentPhase]:
    if game == "tft":
        return [TournamentPhase("Tournament", 1, status, "8-player lobbies, points per placement.")]
    return [
        TournamentPhase(
            "Day 1 — Swiss Rounds", 1, status,
            "Players matched by W/L record. Top players qualify to Day 2.",
        ),
        TournamentPhase(
            "Day 2 — Top Cut", 2, status,
            "Single elimination bracket until a champion is crowned.",
        ),
    ]


def build_participant(name: str, game: str, placement: Optional[int] = None) -> TournamentParticipant:
    player_id = "%s-%s" % (static_team_id(game), re.sub(r"\s+", "-", name.lower()))
    return TournamentParticipant(player_id=player_id, player_name=name, placement=placement)


def _external_url(href: str, wiki: str) -> Optional[str]:
    if not href:
        return None
    if href.startswith("/"):
        return f"{LIQUIPEDIA_BASE}{href}"
    return f"{LIQUIPEDIA_BASE}/{wiki}/{href}"


def tournaments_from_results(rows: Sequence[AchievementRow], game: str, wiki: str, today: date) -> List[Tournament]:
    """Group result rows by tournament name; each group becomes one Tournament."""
    grouped: Dict[str, List[AchievementRow]] = {}
    for row in rows:
        grouped.setdefault(row.tournament_name, []).append(row)

    out: List[Tournament] = []
    for name, entries in grouped.items():
        first = entries[0]
        status = infer_status(first.date, None, today)
        out.append(Tournament(
            id=tournament_id(game, name),
            team_id=static_team_id(game),
            game=game,
            name=name,
            location=infer_location(name, game),
            start_date=first.date,
            time=default_time(game),
            status=status,
            format=default_format(game),
            phases=default_phases(game, status),
            participants=[build_participant(r.player_name, game, r.placement) for r in entries],
            external_url=_external_url(first.tournament_href, wiki),
        ))
    return out


def tournaments_from_events(events: Sequence[UpcomingEvent], game: str, players: Sequence[str], today: date) -> List[Tournament]:
    out: List[Tournament] = []
    for ev in events:
        status = infer_status(ev.start_date, ev.end_date, today)
        out.append(Tournament(
            id=tournament_id(game, ev.name),
            team_id=static_team_id(game),
            game=game,
            name=ev.name,
            location=infer_location(ev.name, game),
            start_date=ev.start_date,
            end_date=ev.end_date,
            time=default_time(game),
            status=status,
            format=default_format(game),
            total_participants=ev.participants,
            phases=default_phases(game, status),
            participants=[build_participant(p, game) for p in players],
            prize_pool=ev.prize_pool,
            region=ev.region,
            external_url=f"{LIQUIPEDIA_BASE}{ev.href}",
        ))
    return out


def dedupe_by_name(tournaments: Sequence[Tournament]) -> List[Tournament]:
    """Keep the first tournament for each normalized name."""
    seen = set()
    out = []
    for t in tournaments:
        key = normalize_name(t.name)
        if key in seen:
            continue
        seen.add(key)
        out.append(t)
    return out


class TournamentScraper:
    """Fetch-and-parse pipelines for the TFT and Pokémon wikis."""

    def __init__(
        self,
        connector: LiquipediaConnector,
        settings: Settings,
        cache: Optional[TTLCache] = None,
        today: Callable[[], date] = date.today,
    ):
        self.connector = connector
        self.settings = settings
        self.cache = cache or TTLCache()
        self._today = today

    async def fetch_results(self, wiki: str) -> List[Tournament]:
        """Past results from the organization's achievements table."""
        game = WIKI_GAMES[wiki]

        async def load() -> List[Tournament]:
            html = await self.connector.fetch_page_html(wiki, self.settings.org_wiki_page)
            if not html:
                return []
            table = find_achievements_table(html)
            if not table:
                logger.warning("No achievements table found on %s team page", wiki)
                return []
            rows = parse_achievement_rows(table)
            tournaments = tournaments_from_results(rows, game, wiki, self._today())
            logger.info("Parsed %d %s results (%d player entries)", len(tournaments), wiki, len(rows))
            return tournaments

        return await self.cache.get_or_load(f"lp-results-{wiki}", RESULTS_TTL, load, store_empty=False)

    async def fetch_upcoming_tft(self) -> List[Tournament]:
        async def load() -> List[Tournament]:
            html = await self.connector.fetch_page_html("tft", self.settings.tft_season_page)
            if not html:
                return []
            events = parse_season_page(html, "tft", self.settings.tft_regions, self._today())
            if not events:
                logger.warning("No upcoming TFT events found on season page")
                return []
            logger.info("Found %d upcoming TFT events", len(events))
            return tournaments_from_events(events, "tft", self.settings.tft_players, self._today())

        return await self.cache.get_or_load("lp-upcoming-tft", UPCOMING_TTL, load, store_empty=False)

    async def fetch_upcoming_pokemon(self) -> List[Tournament]:
        async def load() -> List[Tournament]:
            page = f"Pokemon_Championships/{self.settings.pokemon_championship_year}"
            html = await self.connector.fetch_page_html("pokemon", page)
            if not html:
                return []
            events = parse_vgc_events(html, self._today())
            if not events:
                logger.warning("No upcoming VGC events found")
                return []
            logger.info("Found %d upcoming VGC events", len(events))
            return tournaments_from_events(events, "pokemon_vgc", self.settings.vgc_players, self._today())

        return await self.cache.get_or_load("lp-upcoming-pokemon", UPCOMING_TTL, load, store_empty=False)

    async def fetch_tft(self) -> List[Tournament]:
        results, upcoming = await asyncio.gather(self.fetch_results("tft"), self.fetch_upcoming_tft())
        return dedupe_by_name([*results, *upcoming])

    async def fetch_pokemon(self) -> List[Tournament]:
        results, upcoming = await asyncio.gather(self.fetch_results("pokemon"), self.fetch_upcoming_pokemon())
        return dedupe_by_name([*results, *upcoming])

    async def fetch_all(self) -> List[Tournament]:
        """Every scraped tournament, newest first."""
        tft = await self.fetch_tft()
        pokemon = await self.fetch_pokemon()
        return sorted([*tft, *pokemon], key=lambda t: t.start_date, reverse=True)

    async def fetch_by_game(self, game: str) -> List[Tournament]:
        if game == "tft":
            return await self.fetch_tft()
        if game == "pokemon_vgc":
            return await self.fetch_pokemon()
        return []
