import asyncio
from datetime import date

from koi_feed.config import Settings
from koi_feed.connectors.cache import TTLCache
from koi_feed import tournament_scraper as ts


TEAM_PAGE = """
<div class="fo-nttax-infobox">KOI</div>
<table class="wikitable wikitable-striped sortable" style="width:100%">
<tr><th>Date</th><th>Place</th><th>Tier</th><th></th><th>Tournament</th><th>Player</th><th>Prize</th></tr>
<tr><td>2025-11-20</td><td>3rd</td><td>S-Tier</td><td><a href="/tft/Icon">i</a></td>
<td><a href="/tft/TFT_Paris_Open" title="TFT Paris Open">TFT Paris Open</a></td><td>Reven</td><td>$5,000</td></tr>
<tr><td>2025-11-20</td><td>9th</td><td>S-Tier</td><td></td>
<td><a href="/tft/TFT_Paris_Open" title="TFT Paris Open">TFT Paris Open</a></td><td>Dalesom</td><td>$1,000</td></tr>
<tr><td>2025-09-01</td><td>1st</td><td>A-Tier</td><td></td>
<td><a href="/tft/EMEA_Golden_Spatula_Cup" title="EMEA Golden Spatula Cup">EMEA Golden Spatula Cup</a></td><td>Safo20</td><td>$2,000</td></tr>
<tr><td>TBA</td><td>-</td><td>B-Tier</td><td></td><td>Unknown</td><td>ODESZA</td><td>-</td></tr>
</table>
"""

FILLER = "<p>" + "x" * 900 + "</p>"

SEASON_PAGE = (
    '<h2><span class="mw-headline" id="EMEA_Tournaments">EMEA</span></h2>'
    '<table><tr><td><a href="/tft/Lore_Legends/EMEA_Cup_1" title="Lore &amp; Legends EMEA Cup 1">Lore &amp; Legends EMEA Cup 1</a></td>'
    "<td>Mar 06-15, 2026</td><td>$10,000</td><td>64 participants</td><td>TBD</td></tr>"
    + FILLER
    + '<tr><td><a href="/tft/Lore_Legends/EMEA_Cup_2" title="Lore &amp; Legends EMEA Cup 2">Lore &amp; Legends EMEA Cup 2</a></td>'
    "<td>Apr 10-12, 2026</td><td>$10,000</td><td>Reven</td></tr></table>"
    + FILLER
    + '<h2><span class="mw-headline" id="AMER_Tournaments">AMER</span></h2>'
    '<table><tr><td><a href="/tft/Lore_Legends/AMER_Cup_1" title="Lore &amp; Legends AMER Cup 1">Lore &amp; Legends AMER Cup 1</a></td>'
    "<td>Mar 20-22, 2026</td><td>TBD</td></tr></table>"
)

VGC_PAGE = (
    '<a href="/pokemon/2026_Pokemon_Europe_International_Championships/VGC" '
    'title="2026 Pokémon Europe International Championships - VGC">EUIC 2026 VGC</a>'
    "<span>Feb 13 - Feb 15, 2026</span><span>$500,000</span>"
    + FILLER
    + '<a href="/pokemon/2025_Pokemon_World_Championships/VGC" '
    'title="2025 Pokémon World Championships - VGC">Worlds 2025 VGC</a>'
    "<span>Aug 15-17, 2025</span>"
)


POKEMON_TEAM_PAGE = """
<table class="wikitable wikitable-striped sortable">
<tr><th>Date</th><th>Place</th><th>Tier</th><th></th><th>Tournament</th><th>Player</th><th>Prize</th></tr>
<tr><td>2025-08-15</td><td>5th</td><td>S-Tier</td><td></td>
<td><a href="/pokemon/2025_Pokemon_World_Championships/VGC">2025 Pokémon World Championships - VGC</a></td><td>Eric Rios</td><td>$8,000</td></tr>
</table>
"""


class FakeWiki:
    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def fetch_page_html(self, wiki, page):
        self.calls.append((wiki, page))
        return self.pages.get((wiki, page))


def test_parse_date_range_examples():
    assert ts.parse_date_range("Mar 06-15, 2026") == ("2026-03-06", "2026-03-15")
    assert ts.parse_date_range("Jan 30 - Feb 01, 2026") == ("2026-01-30", "2026-02-01")
    assert ts.parse_date_range("Mar 6, 2026") == ("2026-03-06", None)


def test_parse_date_range_rejects_garbage_and_impossible_dates():
    assert ts.parse_date_range("Feb 30, 2026") is None
    assert ts.parse_date_range("TBA") is None
    assert ts.parse_date_range("Foo 3, 2026") is None


def test_achievement_rows_parsed_and_grouped():
    table = ts.find_achievements_table(TEAM_PAGE)
    rows = ts.parse_achievement_rows(table)
    assert [(r.player_name, r.placement) for r in rows] == [("Reven", 3), ("Dalesom", 9), ("Safo20", 1)]
    assert rows[0].prize == 5000.0

    tournaments = ts.tournaments_from_results(rows, "tft", "tft", date(2026, 1, 10))
    assert [t.name for t in tournaments] == ["TFT Paris Open", "EMEA Golden Spatula Cup"]
    paris = tournaments[0]
    assert paris.id == "lp-tft-tft-paris-open"
    assert paris.team_id == "static-tft"
    assert paris.status == "finished"
    assert paris.location == "Paris, France"
    assert paris.external_url == "https://liquipedia.net/tft/TFT_Paris_Open"
    assert [(p.player_id, p.placement) for p in paris.participants] == [("static-tft-reven", 3), ("static-tft-dalesom", 9)]
    assert tournaments[1].location == "Online"


def test_missing_achievements_table():
    assert ts.find_achievements_table("<div>no table</div>") is None
    assert ts.parse_achievement_rows("") == []


def test_season_page_keeps_only_tbd_rows_in_allowed_regions():
    events = ts.parse_season_page(SEASON_PAGE, "tft", ["EMEA", "Europe", "World"], date(2026, 3, 1))
    assert len(events) == 1
    ev = events[0]
    assert ev.name == "Lore & Legends EMEA Cup 1"
    assert (ev.start_date, ev.end_date) == ("2026-03-06", "2026-03-15")
    assert ev.prize_pool == 10000.0
    assert ev.participants == 64
    assert ev.region == "EMEA"


def test_future_event_without_tbd_is_not_upcoming():
    events = ts.parse_season_page(SEASON_PAGE, "tft", ["EMEA"], date(2026, 3, 1))
    assert "Lore & Legends EMEA Cup 2" not in [e.name for e in events]


def test_region_sections_span_until_next_heading():
    spans = ts.region_sections(SEASON_PAGE)
    assert [s[2] for s in spans] == ["EMEA", "AMER"]
    assert spans[0][1] == spans[1][0]
    assert spans[1][1] == len(SEASON_PAGE)


def test_vgc_events_skip_past_seasons():
    events = ts.parse_vgc_events(VGC_PAGE, date(2026, 1, 10))
    assert [e.name for e in events] == ["2026 Pokémon Europe International Championships - VGC"]
    assert events[0].start_date == "2026-02-13"
    assert events[0].end_date == "2026-02-15"


def test_infer_status():
    today = date(2026, 3, 10)
    assert ts.infer_status("2026-03-11", None, today) == "upcoming"
    assert ts.infer_status("2026-03-06", "2026-03-15", today) == "live"
    assert ts.infer_status("2026-03-10", None, today) == "live"
    assert ts.infer_status("2026-03-01", "2026-03-02", today) == "finished"


def test_default_phases_per_game():
    assert [p.name for p in ts.default_phases("tft", "upcoming")] == ["Tournament"]
    vgc = ts.default_phases("pokemon_vgc", "finished")
    assert [p.day for p in vgc] == [1, 2]
    assert all(p.status == "finished" for p in vgc)


def test_tournaments_from_events_use_roster_players():
    events = ts.parse_season_page(SEASON_PAGE, "tft", ["EMEA"], date(2026, 3, 1))
    tournaments = ts.tournaments_from_events(events, "tft", ["Reven", "Safo20"], date(2026, 3, 1))
    t = tournaments[0]
    assert t.id == "lp-tft-lore-legends-emea-cup-1"
    assert t.status == "upcoming"
    assert t.format == "points_elimination"
    assert t.time == "18:00"
    assert t.region == "EMEA"
    assert [p.player_name for p in t.participants] == ["Reven", "Safo20"]
    assert t.external_url == "https://liquipedia.net/tft/Lore_Legends/EMEA_Cup_1"


def test_scraper_fetch_all_merges_and_caches():
    settings = Settings(tft_season_page="Lore_Legends")
    wiki = FakeWiki({
        ("tft", "KOI"): TEAM_PAGE,
        ("tft", "Lore_Legends"): SEASON_PAGE,
        ("pokemon", "KOI"): POKEMON_TEAM_PAGE,
        ("pokemon", "Pokemon_Championships/2026"): VGC_PAGE,
    })
    scraper = ts.TournamentScraper(wiki, settings, TTLCache(), today=lambda: date(2026, 1, 10))

    first = asyncio.run(scraper.fetch_all())
    calls = len(wiki.calls)
    second = asyncio.run(scraper.fetch_all())

    names = [t.name for t in first]
    assert "Lore & Legends EMEA Cup 1" in names
    assert "TFT Paris Open" in names
    assert "2026 Pokémon Europe International Championships - VGC" in names
    assert "Lore & Legends EMEA Cup 2" not in names
    assert [t.start_date for t in first] == sorted((t.start_date for t in first), reverse=True)
    assert len(wiki.calls) == calls
    assert [t.id for t in second] == [t.id for t in first]


def test_scraper_does_not_cache_missing_pages():
    wiki = FakeWiki({})
    scraper = ts.TournamentScraper(wiki, Settings(), TTLCache(), today=lambda: date(2026, 3, 1))
    assert asyncio.run(scraper.fetch_tft()) == []
    asyncio.run(scraper.fetch_tft())
    assert wiki.calls.count(("tft", "KOI")) == 2


def test_dedupe_keeps_first_by_normalized_name():
    rows = ts.parse_achievement_rows(ts.find_achievements_table(TEAM_PAGE))
    results = ts.tournaments_from_results(rows, "tft", "tft", date(2026, 1, 10))
    dup = ts.tournaments_from_results(rows, "tft", "tft", date(2026, 1, 10))[0]
    dup.name = "  tft  paris OPEN "
    dup.id = "other"
    merged = ts.dedupe_by_name([*results, dup])
    assert [t.id for t in merged] == [t.id for t in results]
