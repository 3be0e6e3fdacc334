import asyncio
import json

import httpx
import pytest

from koi_feed.connectors.errors import StartGGError
from koi_feed.connectors.startgg_connector import StartGGConnector


def _connector(handler):
    return StartGGConnector(token="sgg", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_query_posts_document_with_bearer_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"tournament": {"id": 1, "name": "TFT Open"}}})

    t = asyncio.run(_connector(handler).get_tournament_by_slug("tournament/tft-open"))
    assert t == {"id": 1, "name": "TFT Open"}
    assert seen["auth"] == "Bearer sgg"
    assert seen["body"]["variables"] == {"slug": "tournament/tft-open"}
    assert "TournamentBySlug" in seen["body"]["query"]


def test_graphql_errors_raise_first_message():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Invalid slug"}], "data": None})

    with pytest.raises(StartGGError) as exc:
        asyncio.run(_connector(handler).get_tournament_by_slug("x"))
    assert "Invalid slug" in str(exc.value)


def test_non_2xx_raises_with_status():
    def handler(request):
        return httpx.Response(503, text="down")

    with pytest.raises(StartGGError) as exc:
        asyncio.run(_connector(handler).discover_videogame_id("TFT"))
    assert exc.value.status == 503
    assert "503" in str(exc.value)


def test_connection_failure_raises_typed_error():
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    with pytest.raises(StartGGError) as exc:
        asyncio.run(_connector(handler).get_event_standings(42))
    assert exc.value.status is None
    assert "connection reset" in str(exc.value)


def test_missing_token_raises_value_error(monkeypatch):
    monkeypatch.delenv("STARTGG_TOKEN", raising=False)
    conn = StartGGConnector(client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))))
    with pytest.raises(ValueError):
        asyncio.run(conn.query("{ currentUser { id } }"))


def test_tournament_pages_return_nodes_and_total():
    seen = {}

    def handler(request):
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"tournaments": {
            "pageInfo": {"total": 42, "totalPages": 3},
            "nodes": [{"id": 1}, {"id": 2}],
        }}})

    page = asyncio.run(_connector(handler).get_upcoming_tournaments([33594], page=2, per_page=15))
    assert page == {"tournaments": [{"id": 1}, {"id": 2}], "total": 42}
    assert seen["variables"] == {"videogameIds": ["33594"], "page": 2, "perPage": 15}


def test_event_sets_and_standings_unwrap_nodes():
    def handler(request):
        query = json.loads(request.content)["query"]
        if "EventSets" in query:
            return httpx.Response(200, json={"data": {"event": {"sets": {
                "pageInfo": {"total": 1}, "nodes": [{"id": "s1"}],
            }}}})
        return httpx.Response(200, json={"data": {"event": {"standings": {"nodes": [{"placement": 1}]}}}})

    conn = _connector(handler)
    assert asyncio.run(conn.get_event_sets(9)) == {"sets": [{"id": "s1"}], "total": 1}
    assert asyncio.run(conn.get_event_standings(9)) == [{"placement": 1}]


def test_user_without_tournaments_returns_empty():
    def handler(request):
        return httpx.Response(200, json={"data": {"user": None}})

    assert asyncio.run(_connector(handler).get_user_tournaments(123)) == []
