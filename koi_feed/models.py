"""Normalized domain model shared by every data source.

Instances are rebuilt on each aggregation call from source payloads and are
never persisted; the only storage they ever see is the in-memory TTL cache.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

GAME_LABELS: Dict[str, str] = {
    "league_of_legends": "League of Legends",
    "valorant": "Valorant",
    "call_of_duty": "Call of Duty",
    "tft": "TFT",
    "pokemon_vgc": "Pokémon VGC",
}


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class Player:
    id: str
    nickname: str
    first_name: str = ""
    last_name: str = ""
    role: str = "Player"
    nationality: str = "N/A"
    photo_url: str = ""
    age: Optional[int] = None
    social_links: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class StaffMember:
    id: str
    nickname: str
    first_name: str = ""
    last_name: str = ""
    role: str = "Head Coach"
    nationality: str = "N/A"
    photo_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Team:
    # id prefix routes later lookups: "panda-<n>" or "static-<game>"
    id: str
    name: str
    game: str
    division: str = ""
    logo_url: str = ""
    description: str = ""
    members: List[Player] = field(default_factory=list)
    coach: Optional[StaffMember] = None
    analyst: Optional[StaffMember] = None
    social_links: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            **_drop_none({
                "id": self.id,
                "name": self.name,
                "game": self.game,
                "division": self.division,
                "logo_url": self.logo_url,
                "description": self.description,
                "social_links": self.social_links,
                "coach": self.coach.to_dict() if self.coach else None,
                "analyst": self.analyst.to_dict() if self.analyst else None,
            }),
            "members": [p.to_dict() for p in self.members],
        }


@dataclass
class MatchTeam:
    name: str
    tag: str
    logo_url: str = ""
    id: Optional[str] = None
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class MatchMap:
    id: str
    name: str
    image_url: Optional[str] = None


@dataclass
class DraftPlayerStats:
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    cs: Optional[int] = None
    gold: Optional[int] = None


@dataclass
class DraftPick:
    champion_id: str
    champion_name: str
    champion_image_url: Optional[str] = None
    player_id: Optional[str] = None
    stats: Optional[DraftPlayerStats] = None


@dataclass
class DraftBan:
    champion_id: str
    champion_name: str
    champion_image_url: Optional[str] = None


@dataclass
class DraftTeamDetails:
    picks: List[DraftPick] = field(default_factory=list)
    bans: List[DraftBan] = field(default_factory=list)
    side: Optional[str] = None  # blue/red (LoL) or attacker/defender (Valorant)


@dataclass
class MatchDraft:
    home_team_details: Optional[DraftTeamDetails] = None
    away_team_details: Optional[DraftTeamDetails] = None


@dataclass
class MatchGame:
    id: str
    number: int
    status: str = "upcoming"
    map: Optional[MatchMap] = None
    winner_id: Optional[str] = None
    length: Optional[int] = None
    begin_at: Optional[str] = None
    home_team_score: Optional[int] = None
    away_team_score: Optional[int] = None
    game_mode: Optional[str] = None
    draft: Optional[MatchDraft] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class Match:
    id: str
    team_id: str
    game: str
    tournament: str
    date: str
    time: str
    status: str
    home_team: MatchTeam
    away_team: MatchTeam
    best_of: int = 1
    match_type: Optional[str] = None
    standing: Optional[str] = None
    opponent_standing: Optional[str] = None
    stream_url: Optional[str] = None
    games: Optional[List[MatchGame]] = None
    # lookup keys for standings resolution; not part of the public shape
    tournament_id: Optional[int] = field(default=None, repr=False)
    serie_id: Optional[int] = field(default=None, repr=False)
    org_team_id: Optional[int] = field(default=None, repr=False)
    opponent_team_id: Optional[int] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        d = _drop_none({
            "id": self.id,
            "team_id": self.team_id,
            "game": self.game,
            "tournament": self.tournament,
            "match_type": self.match_type,
            "standing": self.standing,
            "opponent_standing": self.opponent_standing,
            "date": self.date,
            "time": self.time,
            "status": self.status,
            "best_of": self.best_of,
            "stream_url": self.stream_url,
        })
        d["home_team"] = self.home_team.to_dict()
        d["away_team"] = self.away_team.to_dict()
        if self.games is not None:
            d["games"] = [g.to_dict() for g in self.games]
        return d


@dataclass
class TournamentPhase:
    name: str
    day: int
    status: str
    description: str = ""
    qualifying_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class TournamentParticipant:
    player_id: str
    player_name: str
    photo_url: Optional[str] = None
    placement: Optional[int] = None
    wins: Optional[int] = None
    losses: Optional[int] = None
    points: Optional[int] = None
    eliminated: Optional[bool] = None
    current_phase: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class Tournament:
    id: str
    team_id: str
    game: str
    name: str
    start_date: str
    time: str
    status: str
    format: str
    location: Optional[str] = None
    end_date: Optional[str] = None
    total_participants: Optional[int] = None
    phases: List[TournamentPhase] = field(default_factory=list)
    participants: List[TournamentParticipant] = field(default_factory=list)
    prize_pool: Optional[float] = None
    region: Optional[str] = None
    image_url: Optional[str] = None
    stream_url: Optional[str] = None
    external_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = _drop_none({
            "id": self.id,
            "team_id": self.team_id,
            "game": self.game,
            "name": self.name,
            "location": self.location,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "time": self.time,
            "status": self.status,
            "format": self.format,
            "total_participants": self.total_participants,
            "prize_pool": self.prize_pool,
            "region": self.region,
            "image_url": self.image_url,
            "stream_url": self.stream_url,
            "external_url": self.external_url,
        })
        d["phases"] = [p.to_dict() for p in sorted(self.phases, key=lambda p: p.day)]
        d["participants"] = [p.to_dict() for p in self.participants]
        return d


@dataclass
class NotificationPreference:
    team_id: str
    enabled: bool = True
    match_reminders: bool = True
    live_alerts: bool = False
    result_alerts: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
