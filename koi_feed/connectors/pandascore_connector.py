"""PandaScore REST connector.

Thin async wrapper around the PandaScore v2 API used for League of Legends,
Valorant and Call of Duty. It never makes network calls at import time; the
HTTP client is created lazily on first request.

Notes/assumptions:
- The token is sent as a `token` query parameter on every request.
- Responses are returned as decoded JSON; normalization to the domain model
  happens in the aggregation layer.
- Non-2xx responses raise PandaScoreError carrying the status and body. A
  request that exceeds the timeout raises PandaScoreError(timed_out=True).
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from koi_feed.config import PANDASCORE_BASE_URL
from koi_feed.connectors.errors import PandaScoreError

logger = logging.getLogger(__name__)


class PandaScoreConnector:
    """Connector for PandaScore API.

    - Accepts token optionally at construction time (useful for tests).
    - Honors 429 Retry-After up to `max_retries` times.

    Note: Raises ValueError from any request if no token is configured.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = PANDASCORE_BASE_URL,
        timeout: float = 10.0,
        max_retries: int = 1,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.token = token or os.getenv("PANDASCORE_TOKEN")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client
        self._sleep = sleep

    def _client_instance(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if not self.token:
            raise ValueError("PANDASCORE_TOKEN must be set to query PandaScore")

        query: Dict[str, Any] = dict(params or {})
        query["token"] = self.token
        url = f"{self.base_url}{endpoint}"

        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._client_instance().get(url, params=query, timeout=self.timeout)
            except httpx.TimeoutException as exc:
                raise PandaScoreError(None, endpoint, timed_out=True) from exc
            except httpx.HTTPError as exc:
                raise PandaScoreError(None, f"{endpoint}: {exc}") from exc

            if resp.status_code == 429 and attempt < self.max_retries:
                try:
                    ra = int(resp.headers.get("Retry-After") or 0)
                except ValueError:
                    ra = 0
                if ra:
                    logger.warning("PandaScore 429 on %s, retrying after %ss", endpoint, ra)
                    await self._sleep(ra)
                    continue

            if resp.status_code < 200 or resp.status_code >= 300:
                raise PandaScoreError(resp.status_code, resp.text)
            return resp.json()

    # Teams

    async def search_teams(self, name: str, videogame_slug: Optional[str] = None, per_page: int = 25) -> List[Dict[str, Any]]:
        endpoint = f"/{videogame_slug}/teams" if videogame_slug else "/teams"
        return await self._get(endpoint, {"search[name]": name, "per_page": per_page})

    async def get_team(self, team_id: int) -> Dict[str, Any]:
        return await self._get(f"/teams/{team_id}")

    async def find_org_teams(self, aliases: Iterable[str] = ("KOI", "Movistar KOI")) -> List[Dict[str, Any]]:
        """Find every team belonging to the organization across videogames.

        Each alias is searched concurrently; results are deduplicated by id
        and kept when the acronym equals the primary alias or the name
        contains it.
        """
        aliases = list(aliases)
        primary = aliases[0].lower()
        results = await asyncio.gather(*(self.search_teams(a) for a in aliases))

        seen = set()
        teams: List[Dict[str, Any]] = []
        for batch in results:
            for team in batch or []:
                if team.get("id") in seen:
                    continue
                seen.add(team.get("id"))
                acronym = (team.get("acronym") or "").lower()
                name = (team.get("name") or "").lower()
                if acronym == primary or primary in name:
                    teams.append(team)
        return teams

    # Players

    async def get_player(self, player_id: int) -> Dict[str, Any]:
        return await self._get(f"/players/{player_id}")

    # Matches

    @staticmethod
    def _ids_filter(team_ids: Iterable[int]) -> str:
        return ",".join(str(i) for i in team_ids)

    async def get_upcoming_matches(self, team_ids: Iterable[int], per_page: int = 20) -> List[Dict[str, Any]]:
        return await self._get("/matches/upcoming", {
            "filter[opponent_id]": self._ids_filter(team_ids),
            "sort": "scheduled_at",
            "per_page": per_page,
        })

    async def get_running_matches(self, team_ids: Iterable[int], per_page: int = 20) -> List[Dict[str, Any]]:
        return await self._get("/matches/running", {
            "filter[opponent_id]": self._ids_filter(team_ids),
            "per_page": per_page,
        })

    async def get_past_matches(self, team_ids: Iterable[int], per_page: int = 20) -> List[Dict[str, Any]]:
        return await self._get("/matches/past", {
            "filter[opponent_id]": self._ids_filter(team_ids),
            "sort": "-scheduled_at",
            "per_page": per_page,
        })

    async def get_match(self, match_id: int) -> Dict[str, Any]:
        return await self._get(f"/matches/{match_id}")

    async def get_lol_game(self, game_id: int) -> Dict[str, Any]:
        return await self._get(f"/lol/games/{game_id}")

    async def get_valorant_game(self, game_id: int) -> Dict[str, Any]:
        return await self._get(f"/valorant/games/{game_id}")

    # Standings

    async def get_tournament_standings(self, tournament_id: int) -> List[Dict[str, Any]]:
        """Standings for a tournament stage; [] when the stage has none."""
        try:
            return await self._get(f"/tournaments/{tournament_id}/standings") or []
        except PandaScoreError as exc:
            logger.debug("No standings for tournament %s: %s", tournament_id, exc)
            return []

    async def get_serie_tournaments(self, serie_id: int) -> List[Dict[str, Any]]:
        return await self._get(f"/series/{serie_id}/tournaments")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
