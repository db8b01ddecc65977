"""
Scryfall catalog client.

Typed, rate-limited access to the catalog endpoints the tracker needs:
set listing, set detail, paginated set cards, search, autocomplete and
single-card lookup. Upstream JSON is snake_case and sparsely populated;
parse_set() and parse_card() translate it into the catalog dataclasses.

API docs: https://scryfall.com/docs/api
"""

import logging
from datetime import date
from typing import Any

import httpx

from spots.config import settings
from spots.models.catalog import CardPrices, CatalogCard, CatalogSet, ImageUris, SearchResult
from spots.models.failure import NotFoundError, UpstreamError
from spots.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _parse_date(raw: Any) -> date | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def _parse_images(raw: Any) -> ImageUris | None:
    if not isinstance(raw, dict):
        return None
    return ImageUris(
        normal=raw.get("normal"),
        small=raw.get("small"),
        art_crop=raw.get("art_crop"),
    )


def parse_set(data: dict[str, Any]) -> CatalogSet:
    """Translate a Scryfall set object."""
    return CatalogSet(
        code=str(data.get("code") or ""),
        name=str(data.get("name") or ""),
        set_type=str(data.get("set_type") or ""),
        released_at=_parse_date(data.get("released_at")),
        digital=bool(data.get("digital", False)),
        card_count=int(data.get("card_count") or 0),
        icon_svg_uri=data.get("icon_svg_uri"),
    )


def parse_card(data: dict[str, Any]) -> CatalogCard:
    """
    Translate a Scryfall card object.

    Multi-faced cards (transform, modal DFC) carry no top-level image_uris;
    the first face's images are used instead.

    Raises:
        ValueError: If the card has no id
    """
    scryfall_id = data.get("id")
    if not scryfall_id:
        raise ValueError("Card object has no id")

    images = _parse_images(data.get("image_uris"))
    if images is None:
        faces = data.get("card_faces") or []
        if faces and isinstance(faces[0], dict):
            images = _parse_images(faces[0].get("image_uris"))

    raw_prices = data.get("prices") or {}

    return CatalogCard(
        scryfall_id=str(scryfall_id),
        name=str(data.get("name") or ""),
        set_code=str(data.get("set") or ""),
        set_name=str(data.get("set_name") or ""),
        collector_number=str(data.get("collector_number") or ""),
        rarity=str(data.get("rarity") or ""),
        type_line=data.get("type_line"),
        mana_cost=data.get("mana_cost"),
        oracle_text=data.get("oracle_text"),
        language=str(data.get("lang") or "en"),
        images=images or ImageUris(),
        prices=CardPrices(eur=raw_prices.get("eur"), eur_foil=raw_prices.get("eur_foil")),
    )


def _parse_card_list(items: list[Any]) -> list[CatalogCard]:
    cards: list[CatalogCard] = []
    for item in items:
        try:
            cards.append(parse_card(item))
        except (ValueError, AttributeError):
            logger.warning("Skipping malformed card object: %r", item)
    return cards


class CatalogClient:
    """
    Async client for the Scryfall API.

    Every outbound request waits on the shared RateLimiter first.
    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter(settings.catalog_min_interval_ms / 1000)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.catalog_base_url,
            headers={"User-Agent": settings.catalog_user_agent, "Accept": "application/json"},
            timeout=settings.catalog_timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """
        Rate-limited GET.

        Raises:
            UpstreamError: If the service cannot be reached
        """
        async with self.rate_limiter:
            try:
                return await self._client.get(url, params=params)
            except httpx.RequestError as e:
                raise UpstreamError(f"Catalog request failed: {url}", detail=str(e)) from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Catalog returned invalid JSON", detail=str(e)) from e
        if not isinstance(data, dict):
            raise UpstreamError("Catalog returned an unexpected payload")
        return data

    async def list_sets(self) -> list[CatalogSet]:
        """
        List every set known to the catalog.

        Raises:
            UpstreamError: On any non-success response
        """
        response = await self._get("sets")
        if not response.is_success:
            raise UpstreamError(
                "Failed to list sets", detail=f"HTTP {response.status_code}"
            )
        return [parse_set(item) for item in self._json(response).get("data", [])]

    async def get_set(self, code: str) -> CatalogSet:
        """
        Get a single set summary.

        Raises:
            NotFoundError: If the catalog has no such set
            UpstreamError: On any other non-success response
        """
        response = await self._get(f"sets/{code}")
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError("Set", code)
        if not response.is_success:
            raise UpstreamError(f"Failed to get set {code}", detail=f"HTTP {response.status_code}")
        return parse_set(self._json(response))

    async def fetch_set_cards(self, code: str) -> tuple[list[CatalogCard], bool]:
        """
        Fetch every printing of a set, following pagination to the end.

        A failing page ends the walk early: the cards gathered so far are
        returned and a warning is logged.

        Returns:
            Tuple of (cards, complete) where complete is False when a page failed
        """
        cards: list[CatalogCard] = []
        url = "cards/search"
        params: dict[str, Any] | None = {"order": "set", "q": f"set:{code}", "unique": "prints"}
        page = 1

        while True:
            try:
                response = await self._get(url, params=params)
                if page == 1 and response.status_code == httpx.codes.NOT_FOUND:
                    # Scryfall answers 404 when a search matches nothing
                    logger.info("Set %s has no cards in the catalog", code)
                    return cards, True
                if not response.is_success:
                    raise UpstreamError(
                        f"Failed to fetch page {page} of set {code}",
                        detail=f"HTTP {response.status_code}",
                    )
                data = self._json(response)
            except UpstreamError as e:
                logger.warning(
                    "Partial import of set %s: page %d failed (%s: %s), keeping %d cards",
                    code,
                    page,
                    e.message,
                    e.detail,
                    len(cards),
                )
                return cards, False

            cards.extend(_parse_card_list(data.get("data", [])))

            next_page = data.get("next_page")
            if not data.get("has_more") or not next_page:
                return cards, True

            # next_page is absolute and already carries the query
            url = str(next_page)
            params = None
            page += 1

    async def get_set_cards(self, code: str) -> list[CatalogCard]:
        """Every printing of a set (possibly partial, see fetch_set_cards)."""
        cards, _complete = await self.fetch_set_cards(code)
        return cards

    async def search_cards(self, query: str, page: int = 1) -> SearchResult:
        """
        One page of free-text search results.

        Failures (including "no cards found", which Scryfall reports as 404)
        produce an empty result instead of raising.
        """
        try:
            response = await self._get(
                "cards/search", params={"q": query, "page": page, "unique": "prints"}
            )
            if not response.is_success:
                return SearchResult()
            data = self._json(response)
        except UpstreamError as e:
            logger.warning("Card search for %r failed: %s", query, e.detail or e.message)
            return SearchResult()

        return SearchResult(
            cards=_parse_card_list(data.get("data", [])),
            total_cards=int(data.get("total_cards") or 0),
            has_more=bool(data.get("has_more", False)),
        )

    async def autocomplete(self, query: str) -> list[str]:
        """Card name suggestions. Empty on failure."""
        try:
            response = await self._get("cards/autocomplete", params={"q": query})
            if not response.is_success:
                return []
            data = self._json(response)
        except UpstreamError as e:
            logger.warning("Autocomplete for %r failed: %s", query, e.detail or e.message)
            return []
        return [str(name) for name in data.get("data", [])]

    async def get_card_by_id(self, scryfall_id: str) -> CatalogCard:
        """
        Look up a single printing.

        Raises:
            NotFoundError: If the catalog has no such card
            UpstreamError: On any other non-success response
        """
        response = await self._get(f"cards/{scryfall_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError("Card", scryfall_id)
        if not response.is_success:
            raise UpstreamError(
                f"Failed to get card {scryfall_id}", detail=f"HTTP {response.status_code}"
            )
        try:
            return parse_card(self._json(response))
        except ValueError as e:
            raise UpstreamError("Catalog returned a card without id", detail=str(e)) from e
