from collections.abc import Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spots.api.deps import get_catalog_client, get_reconciler, get_scheduler
from spots.db.database import build_engine, build_session_factory, get_session
from spots.jobs.sync_scheduler import SyncScheduler
from spots.main import app
from spots.models.catalog import CardPrices, CatalogCard, CatalogSet, SearchResult
from spots.models.db import Base
from spots.models.failure import NotFoundError
from spots.services.reconciliation import Reconciler


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(async_engine)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


def _card_payload(
    scryfall_id: str,
    name: str | None = None,
    set_code: str = "tst",
    number: str = "1",
    eur: str | None = "1.00",
    eur_foil: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "object": "card",
        "id": scryfall_id,
        "name": name or f"Card {scryfall_id}",
        "set": set_code,
        "set_name": f"Set {set_code.upper()}",
        "collector_number": number,
        "rarity": "common",
        "type_line": "Instant",
        "mana_cost": "{1}",
        "lang": "en",
        "image_uris": {
            "normal": f"https://img.test/{scryfall_id}/normal.jpg",
            "small": f"https://img.test/{scryfall_id}/small.jpg",
            "art_crop": f"https://img.test/{scryfall_id}/art.jpg",
        },
        "prices": {"eur": eur, "eur_foil": eur_foil, "usd": "9.99"},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def card_payload() -> Callable[..., dict[str, Any]]:
    """Factory for Scryfall card JSON objects."""
    return _card_payload


def _catalog_card(
    scryfall_id: str,
    set_code: str = "tst",
    number: str = "1",
    eur: str | None = "1.00",
    eur_foil: str | None = None,
    name: str | None = None,
) -> CatalogCard:
    return CatalogCard(
        scryfall_id=scryfall_id,
        name=name or f"Card {scryfall_id}",
        set_code=set_code,
        set_name=f"Set {set_code.upper()}",
        collector_number=number,
        rarity="common",
        prices=CardPrices(eur=eur, eur_foil=eur_foil),
    )


@pytest.fixture
def catalog_card() -> Callable[..., CatalogCard]:
    """Factory for parsed catalog cards."""
    return _catalog_card


class FakeCatalogClient:
    """In-process catalog: sets and their cards are configured per test."""

    def __init__(self) -> None:
        self.sets: list[CatalogSet] = []
        self.cards: dict[str, list[CatalogCard]] = {}
        self.incomplete: set[str] = set()
        self.broken: set[str] = set()
        self.fetched: list[str] = []

    def add_set(
        self, code: str, cards: list[CatalogCard], catalog_set: CatalogSet | None = None
    ) -> None:
        self.cards[code] = cards
        if catalog_set is not None:
            self.sets.append(catalog_set)

    async def list_sets(self) -> list[CatalogSet]:
        return list(self.sets)

    async def get_set(self, code: str) -> CatalogSet:
        for catalog_set in self.sets:
            if catalog_set.code == code:
                return catalog_set
        raise NotFoundError("Set", code)

    async def fetch_set_cards(self, code: str) -> tuple[list[CatalogCard], bool]:
        self.fetched.append(code)
        if code in self.broken:
            raise RuntimeError(f"catalog exploded on {code}")
        return list(self.cards.get(code, [])), code not in self.incomplete

    async def get_card_by_id(self, scryfall_id: str) -> CatalogCard:
        for cards in self.cards.values():
            for card in cards:
                if card.scryfall_id == scryfall_id:
                    return card
        raise NotFoundError("Card", scryfall_id)

    async def search_cards(self, query: str, page: int = 1) -> SearchResult:
        matches = [c for cards in self.cards.values() for c in cards if query in c.name]
        return SearchResult(cards=matches, total_cards=len(matches), has_more=False)

    async def autocomplete(self, query: str) -> list[str]:
        return [c.name for cards in self.cards.values() for c in cards if c.name.startswith(query)]


@pytest.fixture
def fake_catalog() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def reconciler(fake_catalog, session_factory) -> Reconciler:
    return Reconciler(fake_catalog, session_factory)  # type: ignore[arg-type]


@pytest.fixture
def scheduler(reconciler, session_factory) -> SyncScheduler:
    """A scheduler that is never started; API tests only use its trigger."""
    return SyncScheduler(reconciler, session_factory)


@pytest.fixture
async def client(session_factory, fake_catalog, reconciler, scheduler):
    """Provide an async test client with overridden dependencies."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_catalog_client] = lambda: fake_catalog
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
