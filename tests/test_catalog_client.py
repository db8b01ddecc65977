"""Tests for the Scryfall catalog client."""

import time
from datetime import date

import httpx
import pytest
import respx

from spots.models.failure import NotFoundError, UpstreamError
from spots.services.catalog_client import CatalogClient, parse_card, parse_set
from spots.services.rate_limiter import RateLimiter

BASE_URL = "https://catalog.test/"
SEARCH_URL = f"{BASE_URL}cards/search"


@pytest.fixture
async def client():
    async with CatalogClient(base_url=BASE_URL, rate_limiter=RateLimiter(0)) as catalog:
        yield catalog


def _page(cards: list[dict], next_page: int | None = None) -> dict:
    body: dict = {"object": "list", "has_more": next_page is not None, "data": cards}
    if next_page is not None:
        body["next_page"] = f"{SEARCH_URL}?order=set&page={next_page}&q=set%3Atst&unique=prints"
    return body


class TestParseCard:
    def test_parses_fields(self, card_payload) -> None:
        card = parse_card(card_payload("abc", name="Lightning Bolt", number="141", eur="0.25"))

        assert card.scryfall_id == "abc"
        assert card.name == "Lightning Bolt"
        assert card.set_code == "tst"
        assert card.collector_number == "141"
        assert card.images.normal == "https://img.test/abc/normal.jpg"
        assert card.prices.eur == "0.25"
        assert card.prices.eur_foil is None

    def test_falls_back_to_first_face_images(self, card_payload) -> None:
        """Double-faced cards carry images per face only."""
        payload = card_payload("dfc")
        del payload["image_uris"]
        payload["card_faces"] = [
            {"name": "Front", "image_uris": {"normal": "front.jpg", "small": "front-s.jpg"}},
            {"name": "Back", "image_uris": {"normal": "back.jpg"}},
        ]

        card = parse_card(payload)

        assert card.images.normal == "front.jpg"
        assert card.images.small == "front-s.jpg"
        assert card.images.art_crop is None

    def test_missing_images_are_empty(self, card_payload) -> None:
        payload = card_payload("noimg")
        del payload["image_uris"]

        card = parse_card(payload)

        assert card.images.normal is None

    def test_missing_id_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_card({"name": "Nameless"})

    def test_collector_number_stays_a_string(self, card_payload) -> None:
        assert parse_card(card_payload("x", number="12a")).collector_number == "12a"


class TestParseSet:
    def test_parses_set(self) -> None:
        catalog_set = parse_set(
            {
                "code": "dmu",
                "name": "Dominaria United",
                "set_type": "expansion",
                "released_at": "2022-09-09",
                "digital": False,
                "card_count": 281,
            }
        )

        assert catalog_set.code == "dmu"
        assert catalog_set.released_at == date(2022, 9, 9)
        assert catalog_set.card_count == 281

    def test_bad_release_date_is_none(self) -> None:
        assert parse_set({"code": "x", "released_at": "soon"}).released_at is None


class TestFetchSetCards:
    @respx.mock
    async def test_single_page(self, client: CatalogClient, card_payload) -> None:
        route = respx.get(SEARCH_URL).mock(
            return_value=httpx.Response(200, json=_page([card_payload("a"), card_payload("b")]))
        )

        cards, complete = await client.fetch_set_cards("tst")

        assert complete is True
        assert [c.scryfall_id for c in cards] == ["a", "b"]
        params = route.calls.last.request.url.params
        assert params["q"] == "set:tst"
        assert params["order"] == "set"
        assert params["unique"] == "prints"

    @respx.mock
    async def test_follows_pagination(self, client: CatalogClient, card_payload) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            page = request.url.params.get("page")
            if page is None:
                return httpx.Response(200, json=_page([card_payload("a")], next_page=2))
            if page == "2":
                return httpx.Response(200, json=_page([card_payload("b")], next_page=3))
            return httpx.Response(200, json=_page([card_payload("c")]))

        route = respx.get(SEARCH_URL).mock(side_effect=respond)

        cards, complete = await client.fetch_set_cards("tst")

        assert complete is True
        assert [c.scryfall_id for c in cards] == ["a", "b", "c"]
        assert route.call_count == 3

    @respx.mock
    async def test_failing_page_keeps_earlier_pages(
        self, client: CatalogClient, card_payload, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Page 2 of 3 fails: page 1 is returned and the fetch is marked incomplete."""

        def respond(request: httpx.Request) -> httpx.Response:
            page = request.url.params.get("page")
            if page is None:
                return httpx.Response(200, json=_page([card_payload("a")], next_page=2))
            if page == "2":
                return httpx.Response(500)
            return httpx.Response(200, json=_page([card_payload("c")]))

        route = respx.get(SEARCH_URL).mock(side_effect=respond)

        cards, complete = await client.fetch_set_cards("tst")

        assert complete is False
        assert [c.scryfall_id for c in cards] == ["a"]
        assert route.call_count == 2
        assert "Partial import of set tst" in caplog.text

    @respx.mock
    async def test_first_page_failure_returns_nothing(self, client: CatalogClient) -> None:
        respx.get(SEARCH_URL).mock(return_value=httpx.Response(503))

        cards, complete = await client.fetch_set_cards("tst")

        assert cards == []
        assert complete is False

    @respx.mock
    async def test_connection_error_is_partial(self, client: CatalogClient) -> None:
        respx.get(SEARCH_URL).mock(side_effect=httpx.ConnectError("refused"))

        cards, complete = await client.fetch_set_cards("tst")

        assert cards == []
        assert complete is False

    @respx.mock
    async def test_no_matches_is_complete_and_empty(self, client: CatalogClient) -> None:
        """Scryfall reports an empty search as 404."""
        respx.get(SEARCH_URL).mock(
            return_value=httpx.Response(404, json={"object": "error", "code": "not_found"})
        )

        cards, complete = await client.fetch_set_cards("zzz")

        assert cards == []
        assert complete is True

    @respx.mock
    async def test_skips_malformed_cards(self, client: CatalogClient, card_payload) -> None:
        respx.get(SEARCH_URL).mock(
            return_value=httpx.Response(200, json=_page([card_payload("a"), {"name": "no id"}]))
        )

        cards = await client.get_set_cards("tst")

        assert [c.scryfall_id for c in cards] == ["a"]

    @respx.mock
    async def test_sends_user_agent(self, client: CatalogClient) -> None:
        route = respx.get(SEARCH_URL).mock(return_value=httpx.Response(200, json=_page([])))

        await client.fetch_set_cards("tst")

        assert route.calls.last.request.headers["User-Agent"]
        assert route.calls.last.request.headers["Accept"] == "application/json"


class TestSets:
    @respx.mock
    async def test_list_sets(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}sets").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {"code": "dmu", "name": "Dominaria United", "set_type": "expansion"},
                        {"code": "ydmu", "name": "Alchemy", "set_type": "alchemy", "digital": True},
                    ]
                },
            )
        )

        sets = await client.list_sets()

        assert [s.code for s in sets] == ["dmu", "ydmu"]
        assert sets[1].digital is True

    @respx.mock
    async def test_list_sets_failure_raises(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}sets").mock(return_value=httpx.Response(500))

        with pytest.raises(UpstreamError):
            await client.list_sets()

    @respx.mock
    async def test_list_sets_invalid_json_raises(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}sets").mock(return_value=httpx.Response(200, content=b"<html>"))

        with pytest.raises(UpstreamError, match="invalid JSON"):
            await client.list_sets()

    @respx.mock
    async def test_get_set_not_found(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}sets/nope").mock(return_value=httpx.Response(404))

        with pytest.raises(NotFoundError) as exc_info:
            await client.get_set("nope")

        assert exc_info.value.status_code == 404

    @respx.mock
    async def test_get_set_server_error(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}sets/dmu").mock(return_value=httpx.Response(500))

        with pytest.raises(UpstreamError):
            await client.get_set("dmu")


class TestSearch:
    @respx.mock
    async def test_search_returns_page(self, client: CatalogClient, card_payload) -> None:
        respx.get(SEARCH_URL).mock(
            return_value=httpx.Response(
                200,
                json={"data": [card_payload("a")], "total_cards": 40, "has_more": True},
            )
        )

        result = await client.search_cards("bolt", page=2)

        assert [c.scryfall_id for c in result.cards] == ["a"]
        assert result.total_cards == 40
        assert result.has_more is True

    @respx.mock
    async def test_search_failure_is_empty(self, client: CatalogClient) -> None:
        respx.get(SEARCH_URL).mock(return_value=httpx.Response(404))

        result = await client.search_cards("no such card")

        assert result.cards == []
        assert result.total_cards == 0
        assert result.has_more is False

    @respx.mock
    async def test_search_network_error_is_empty(self, client: CatalogClient) -> None:
        respx.get(SEARCH_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        result = await client.search_cards("bolt")

        assert result.cards == []

    @respx.mock
    async def test_autocomplete(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}cards/autocomplete").mock(
            return_value=httpx.Response(200, json={"data": ["Lightning Bolt", "Lightning Helix"]})
        )

        assert await client.autocomplete("light") == ["Lightning Bolt", "Lightning Helix"]

    @respx.mock
    async def test_autocomplete_failure_is_empty(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}cards/autocomplete").mock(return_value=httpx.Response(500))

        assert await client.autocomplete("light") == []


class TestGetCardById:
    @respx.mock
    async def test_returns_card(self, client: CatalogClient, card_payload) -> None:
        respx.get(f"{BASE_URL}cards/abc").mock(
            return_value=httpx.Response(200, json=card_payload("abc"))
        )

        card = await client.get_card_by_id("abc")

        assert card.scryfall_id == "abc"

    @respx.mock
    async def test_not_found(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}cards/missing").mock(return_value=httpx.Response(404))

        with pytest.raises(NotFoundError, match="Card 'missing' not found"):
            await client.get_card_by_id("missing")

    @respx.mock
    async def test_server_error(self, client: CatalogClient) -> None:
        respx.get(f"{BASE_URL}cards/abc").mock(return_value=httpx.Response(502))

        with pytest.raises(UpstreamError):
            await client.get_card_by_id("abc")


class TestRateLimiting:
    @respx.mock
    async def test_requests_are_spaced_by_the_interval(self) -> None:
        route = respx.get(f"{BASE_URL}sets").mock(
            return_value=httpx.Response(200, json={"data": []})
        )
        interval = 0.05

        async with CatalogClient(base_url=BASE_URL, rate_limiter=RateLimiter(interval)) as catalog:
            start = time.monotonic()
            for _ in range(5):
                await catalog.list_sets()
            elapsed = time.monotonic() - start

        assert route.call_count == 5
        # The first request goes out at once; each later one waits an interval
        assert elapsed >= 4 * interval - 0.005
