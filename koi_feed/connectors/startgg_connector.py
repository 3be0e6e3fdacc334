"""start.gg GraphQL connector.

Queries tournament data for TFT and Pokémon VGC. All calls go through
`query()`, which POSTs a GraphQL document with a Bearer token and raises
StartGGError on a non-2xx status or when the payload carries `errors`.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx

from koi_feed.config import STARTGG_API_URL
from koi_feed.connectors.errors import StartGGError

logger = logging.getLogger(__name__)

_TOURNAMENT_FIELDS = """
        id
        name
        slug
        startAt
        endAt
        state
        numAttendees
        isOnline
        city
        countryCode
        images {
          url
          type
        }
        events {
          id
          name
          slug
          state
          startAt
          numEntrants
          videogame {
            id
            name
          }
        }
"""

UPCOMING_TOURNAMENTS_QUERY = """
  query UpcomingTournaments($videogameIds: [ID!], $perPage: Int!, $page: Int!) {
    tournaments(query: {
      perPage: $perPage
      page: $page
      sortBy: "startAt asc"
      filter: { upcoming: true, videogameIds: $videogameIds }
    }) {
      pageInfo { total totalPages }
      nodes {%s}
    }
  }
""" % _TOURNAMENT_FIELDS

PAST_TOURNAMENTS_QUERY = """
  query PastTournaments($videogameIds: [ID!], $perPage: Int!, $page: Int!) {
    tournaments(query: {
      perPage: $perPage
      page: $page
      sortBy: "startAt desc"
      filter: { past: true, videogameIds: $videogameIds }
    }) {
      pageInfo { total totalPages }
      nodes {%s}
    }
  }
""" % _TOURNAMENT_FIELDS

USER_TOURNAMENTS_QUERY = """
  query UserTournaments($userId: ID!, $perPage: Int!, $page: Int!) {
    user(id: $userId) {
      tournaments(query: { perPage: $perPage, page: $page }) {
        nodes {%s}
      }
    }
  }
""" % _TOURNAMENT_FIELDS

TOURNAMENT_BY_SLUG_QUERY = """
  query TournamentBySlug($slug: String!) {
    tournament(slug: $slug) {%s}
  }
""" % _TOURNAMENT_FIELDS

EVENT_STANDINGS_QUERY = """
  query EventStandings($eventId: ID!, $page: Int!, $perPage: Int!) {
    event(id: $eventId) {
      id
      name
      standings(query: { perPage: $perPage, page: $page }) {
        nodes {
          placement
          entrant {
            id
            name
            participants { id gamerTag prefix }
          }
        }
      }
    }
  }
"""

EVENT_SETS_QUERY = """
  query EventSets($eventId: ID!, $page: Int!, $perPage: Int!) {
    event(id: $eventId) {
      id
      name
      sets(page: $page, perPage: $perPage, sortType: STANDARD) {
        pageInfo { total totalPages }
        nodes {
          id
          completedAt
          startAt
          state
          fullRoundText
          displayScore
          winnerId
          totalGames
          slots {
            id
            entrant {
              id
              name
              participants { id gamerTag prefix }
            }
            standing { stats { score { value } } }
          }
        }
      }
    }
  }
"""

VIDEOGAME_SEARCH_QUERY = """
  query VideogameSearch($name: String!) {
    videogames(query: { filter: { name: $name }, perPage: 10 }) {
      nodes { id name displayName }
    }
  }
"""


class StartGGConnector:
    """Connector for the start.gg GraphQL API."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = STARTGG_API_URL,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token or os.getenv("STARTGG_TOKEN")
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    def _client_instance(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    async def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL document and return its `data` object."""
        if not self.token:
            raise ValueError("STARTGG_TOKEN must be set to query start.gg")

        try:
            resp = await self._client_instance().post(
                self.api_url,
                headers=self._headers(),
                json={"query": document, "variables": variables or {}},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise StartGGError("start.gg request timed out") from exc
        except httpx.HTTPError as exc:
            raise StartGGError(f"start.gg request failed: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            raise StartGGError(f"start.gg API error: {resp.status_code} {resp.reason_phrase}", resp.status_code)

        payload = resp.json() or {}
        errors = payload.get("errors")
        if errors:
            message = (errors[0] or {}).get("message") or "Unknown error"
            raise StartGGError(f"start.gg GraphQL error: {message}", resp.status_code)
        return payload.get("data") or {}

    async def discover_videogame_id(self, name: str) -> List[Dict[str, Any]]:
        data = await self.query(VIDEOGAME_SEARCH_QUERY, {"name": name})
        return ((data.get("videogames") or {}).get("nodes")) or []

    async def _tournaments_page(self, document: str, videogame_ids: Sequence[int], page: int, per_page: int) -> Dict[str, Any]:
        data = await self.query(document, {
            "videogameIds": [str(v) for v in videogame_ids],
            "page": page,
            "perPage": per_page,
        })
        block = data.get("tournaments") or {}
        return {
            "tournaments": block.get("nodes") or [],
            "total": (block.get("pageInfo") or {}).get("total") or 0,
        }

    async def get_upcoming_tournaments(self, videogame_ids: Sequence[int], page: int = 1, per_page: int = 15) -> Dict[str, Any]:
        return await self._tournaments_page(UPCOMING_TOURNAMENTS_QUERY, videogame_ids, page, per_page)

    async def get_past_tournaments(self, videogame_ids: Sequence[int], page: int = 1, per_page: int = 15) -> Dict[str, Any]:
        return await self._tournaments_page(PAST_TOURNAMENTS_QUERY, videogame_ids, page, per_page)

    async def get_user_tournaments(self, user_id: int, page: int = 1, per_page: int = 15) -> List[Dict[str, Any]]:
        data = await self.query(USER_TOURNAMENTS_QUERY, {"userId": str(user_id), "page": page, "perPage": per_page})
        user = data.get("user") or {}
        return ((user.get("tournaments") or {}).get("nodes")) or []

    async def get_tournament_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        data = await self.query(TOURNAMENT_BY_SLUG_QUERY, {"slug": slug})
        return data.get("tournament")

    async def get_event_standings(self, event_id: int, page: int = 1, per_page: int = 25) -> List[Dict[str, Any]]:
        data = await self.query(EVENT_STANDINGS_QUERY, {"eventId": str(event_id), "page": page, "perPage": per_page})
        event = data.get("event") or {}
        return ((event.get("standings") or {}).get("nodes")) or []

    async def get_event_sets(self, event_id: int, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        data = await self.query(EVENT_SETS_QUERY, {"eventId": str(event_id), "page": page, "perPage": per_page})
        sets = (data.get("event") or {}).get("sets") or {}
        return {
            "sets": sets.get("nodes") or [],
            "total": (sets.get("pageInfo") or {}).get("total") or 0,
        }

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
