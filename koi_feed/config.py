"""Runtime configuration for the KOI data feed.

Values are read from the environment (a local `.env` file is merged in via
python-dotenv). The wiki slugs below move a few times per year as the
scraped site reorganises, so they are overridable without a code change:

- TFT_SEASON_PAGE: current TFT set page (e.g. 'Lore_%26_Legends')
- POKEMON_CHAMPIONSHIP_YEAR: current Pokémon championship season
- CDL_SEASON_PAGE: current Call of Duty League season page

An unset or placeholder token disables the corresponding source.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

PLACEHOLDER_TOKENS = {"", "YOUR_PANDASCORE_API_TOKEN", "YOUR_STARTGG_TOKEN", "changeme"}

PANDASCORE_BASE_URL = "https://api.pandascore.co"
STARTGG_API_URL = "https://api.start.gg/gql/alpha"
LIQUIPEDIA_BASE = "https://liquipedia.net"

# Minimum roster size for a discovered team to be listed
MIN_ROSTER_SIZE: Dict[str, int] = {
    "league_of_legends": 5,
    "valorant": 5,
    "call_of_duty": 4,
    "tft": 1,
    "pokemon_vgc": 1,
}

# Words that mark a link on a season page as a tournament rather than noise
TOURNAMENT_KEYWORDS = [
    "Cup", "Championship", "Finals", "Regional", "Qualifier", "Crown", "Open",
    "Tournament", "Trials", "Series", "VGC", "Invitational", "Circuit",
]

COD_GAME_MODES: Dict[str, str] = {
    "Hardpoint": "HP",
    "Search and Destroy": "S&D",
    "Search & Destroy": "S&D",
    "Control": "CTL",
    "S&D": "S&D",
    "HP": "HP",
    "CTL": "CTL",
}

STARTGG_VIDEOGAME_IDS: Dict[str, int] = {
    "tft": 33594,
    "pokemon_vgc": 45331,
}


def _env_list(name: str, default: str = "") -> List[str]:
    val = os.getenv(name, default)
    return [v.strip() for v in val.split(",") if v.strip()]


def _env_int_list(name: str) -> List[int]:
    out: List[int] = []
    for v in _env_list(name):
        try:
            out.append(int(v))
        except ValueError:
            continue
    return out


def is_token_configured(token: Optional[str]) -> bool:
    return bool(token) and token not in PLACEHOLDER_TOKENS


@dataclass
class Settings:
    """Snapshot of everything the service layer needs at construction time."""

    pandascore_token: Optional[str] = None
    pandascore_base_url: str = PANDASCORE_BASE_URL
    startgg_token: Optional[str] = None
    startgg_api_url: str = STARTGG_API_URL
    startgg_videogame_ids: Dict[str, int] = field(default_factory=lambda: dict(STARTGG_VIDEOGAME_IDS))
    startgg_player_user_ids: Dict[str, List[int]] = field(default_factory=dict)
    startgg_tracked_slugs: Dict[str, List[str]] = field(default_factory=dict)
    startgg_browse_by_videogame: bool = False
    startgg_min_attendees: int = 16
    liquipedia_user_agent: str = "MovistarKOI-App/1.0 (esports fan app; contact@movistar-koi-app.dev)"
    tft_season_page: str = "Lore_%26_Legends"
    pokemon_championship_year: str = "2026"
    cdl_season_page: str = "Call_of_Duty_League/2026"
    org_aliases: List[str] = field(default_factory=lambda: ["KOI", "Movistar KOI"])
    org_cod_team_name: str = "KOI"
    org_wiki_page: str = "KOI"
    tft_regions: List[str] = field(default_factory=lambda: ["EMEA", "Europe", "World"])
    tft_players: List[str] = field(default_factory=lambda: ["Reven", "Dalesom", "Safo20", "ODESZA"])
    vgc_players: List[str] = field(default_factory=lambda: ["Eric Rios", "Alex Gómez"])
    timezone: str = "Europe/Madrid"
    reminder_minutes: int = 15

    @property
    def pandascore_enabled(self) -> bool:
        return is_token_configured(self.pandascore_token)

    @property
    def startgg_enabled(self) -> bool:
        return is_token_configured(self.startgg_token)

    @property
    def startgg_has_sources(self) -> bool:
        has_players = any(self.startgg_player_user_ids.values())
        has_slugs = any(self.startgg_tracked_slugs.values())
        return self.startgg_enabled and (has_players or has_slugs or self.startgg_browse_by_videogame)


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        pandascore_token=os.getenv("PANDASCORE_TOKEN"),
        pandascore_base_url=os.getenv("PANDASCORE_BASE_URL", PANDASCORE_BASE_URL),
        startgg_token=os.getenv("STARTGG_TOKEN"),
        startgg_api_url=os.getenv("STARTGG_API_URL", STARTGG_API_URL),
        startgg_player_user_ids={
            "tft": _env_int_list("STARTGG_TFT_USER_IDS"),
            "pokemon_vgc": _env_int_list("STARTGG_VGC_USER_IDS"),
        },
        startgg_tracked_slugs={
            "tft": _env_list("STARTGG_TFT_SLUGS"),
            "pokemon_vgc": _env_list("STARTGG_VGC_SLUGS"),
        },
        startgg_browse_by_videogame=os.getenv("STARTGG_BROWSE_BY_VIDEOGAME", "false").lower() == "true",
        startgg_min_attendees=int(os.getenv("STARTGG_MIN_ATTENDEES", "16")),
        liquipedia_user_agent=os.getenv(
            "LIQUIPEDIA_USER_AGENT",
            "MovistarKOI-App/1.0 (esports fan app; contact@movistar-koi-app.dev)",
        ),
        tft_season_page=os.getenv("TFT_SEASON_PAGE", "Lore_%26_Legends"),
        pokemon_championship_year=os.getenv("POKEMON_CHAMPIONSHIP_YEAR", "2026"),
        cdl_season_page=os.getenv("CDL_SEASON_PAGE", "Call_of_Duty_League/2026"),
        org_aliases=_env_list("ORG_ALIASES", "KOI,Movistar KOI"),
        org_cod_team_name=os.getenv("ORG_COD_TEAM_NAME", "KOI"),
        org_wiki_page=os.getenv("ORG_WIKI_PAGE", "KOI"),
        tft_regions=_env_list("TFT_REGIONS", "EMEA,Europe,World"),
        tft_players=_env_list("TFT_PLAYERS", "Reven,Dalesom,Safo20,ODESZA"),
        vgc_players=_env_list("VGC_PLAYERS", "Eric Rios,Alex Gómez"),
        timezone=os.getenv("DISPLAY_TIMEZONE", "Europe/Madrid"),
        reminder_minutes=int(os.getenv("REMINDER_MINUTES", "15")),
    )
