"""Hand-maintained rosters for games PandaScore does not cover.

Source: Liquipedia team pages. Refresh when a roster changes.
"""
from __future__ import annotations

from typing import List, Optional

from koi_feed.models import Player, StaffMember, Team

KOI_LOGO = "https://liquipedia.net/commons/images/thumb/5/54/KOI_2024_blue_allmode.png/600px-KOI_2024_blue_allmode.png"
PLACEHOLDER_PHOTO = "https://via.placeholder.com/200x200?text={}"

SOCIAL_LINKS = {
    "twitter": "https://twitter.com/MovistarKOI",
    "instagram": "https://instagram.com/movistarkoi",
}


def _tft_team() -> Team:
    return Team(
        id="static-tft",
        name="KOI TFT",
        game="tft",
        division="Lore & Legends",
        logo_url=KOI_LOGO,
        description="Equipo profesional de Teamfight Tactics de Movistar KOI.",
        members=[
            Player(
                "static-tft-1", "Reven", "Antonio", "Pino", nationality="ES",
                photo_url="https://liquipedia.net/commons/images/thumb/7/77/Reven_EMEA_2025.jpg/600px-Reven_EMEA_2025.jpg",
            ),
            Player("static-tft-2", "Dalesom", "Ignacio", "Cosano Perea", nationality="ES",
                   photo_url=PLACEHOLDER_PHOTO.format("Dalesom")),
            Player("static-tft-3", "ODESZA", nationality="ES", photo_url=PLACEHOLDER_PHOTO.format("ODESZA")),
            Player("static-tft-4", "Safo20", "Marc", "Safont", nationality="ES",
                   photo_url=PLACEHOLDER_PHOTO.format("Safo20")),
        ],
        coach=StaffMember(
            "static-tft-coach", "estanishing", "Estanis", nationality="ES",
            photo_url=PLACEHOLDER_PHOTO.format("estanishing"),
        ),
        social_links=dict(SOCIAL_LINKS),
    )


def _pokemon_team() -> Team:
    return Team(
        id="static-pokemon",
        name="KOI Pokémon VGC",
        game="pokemon_vgc",
        division="VGC Circuit",
        logo_url=KOI_LOGO,
        description="Equipo profesional de Pokémon VGC de Movistar KOI.",
        members=[
            Player("static-pokemon-1", "Alex Gómez", "Alex", "Gómez Berna", nationality="ES",
                   photo_url=PLACEHOLDER_PHOTO.format("Alex+G%C3%B3mez")),
            Player("static-pokemon-2", "Eric Rios", "Eric", "Rios", nationality="ES",
                   photo_url=PLACEHOLDER_PHOTO.format("Eric+Rios")),
        ],
        social_links=dict(SOCIAL_LINKS),
    )


def static_teams() -> List[Team]:
    """Fresh copies, so callers may decorate them without leaking state."""
    return [_tft_team(), _pokemon_team()]


def static_team(team_id: str) -> Optional[Team]:
    return next((t for t in static_teams() if t.id == team_id), None)


def static_team_for_game(game: str) -> Optional[Team]:
    return next((t for t in static_teams() if t.game == game), None)
