"""Tests for tracker API endpoints."""

import pytest
from httpx import AsyncClient


@pytest.fixture
def tst_set(fake_catalog, catalog_card):
    """A three-card set "tst" available from the catalog."""
    fake_catalog.add_set(
        "tst",
        [
            catalog_card("a", number="1", name="Alpha"),
            catalog_card("b", number="2", name="Beta"),
            catalog_card("c", number="3", name="Gamma"),
        ],
    )


async def _create_set_tracker(client: AsyncClient, **extra) -> dict:
    response = await client.post(
        "/api/trackers", json={"name": "Test Set", "set_code": "tst", **extra}
    )
    assert response.status_code == 201
    return response.json()


async def _cards(client: AsyncClient, tracker_id: int) -> list[dict]:
    response = await client.get(f"/api/trackers/{tracker_id}/cards")
    assert response.status_code == 200
    return response.json()["cards"]


class TestCreateTracker:
    async def test_set_tracker_contains_every_card(self, client: AsyncClient, tst_set) -> None:
        response = await client.post(
            "/api/trackers", json={"name": "Test Set", "set_code": "TST"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["set_code"] == "tst"
        assert data["total_cards"] == 3
        assert data["completion_percentage"] == 0.0
        assert data["track_non_foil"] is True
        assert data["track_foil"] is False

    async def test_custom_tracker_starts_empty(self, client: AsyncClient) -> None:
        response = await client.post("/api/trackers", json={"name": "Favourites"})

        assert response.status_code == 201
        assert response.json()["total_cards"] == 0

    async def test_unfetchable_set_creates_nothing(
        self, client: AsyncClient, fake_catalog
    ) -> None:
        fake_catalog.incomplete.add("bad")

        response = await client.post("/api/trackers", json={"name": "Broken", "set_code": "bad"})

        assert response.status_code == 502
        assert response.json()["kind"] == "external_api_error"
        listing = await client.get("/api/trackers")
        assert listing.json() == []

    async def test_blank_name_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/api/trackers", json={"name": ""})

        assert response.status_code == 422


class TestTrackerCrud:
    async def test_get_update_delete(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)

        response = await client.put(
            f"/api/trackers/{tracker['id']}",
            json={"name": "Renamed", "track_foil": True, "is_pinned": True},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["track_foil"] is True
        assert response.json()["is_pinned"] is True

        response = await client.get(f"/api/trackers/{tracker['id']}")
        assert response.json()["name"] == "Renamed"

        response = await client.delete(f"/api/trackers/{tracker['id']}")
        assert response.status_code == 204

        response = await client.get(f"/api/trackers/{tracker['id']}")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    async def test_list_puts_pinned_first(self, client: AsyncClient) -> None:
        first = (await client.post("/api/trackers", json={"name": "First"})).json()
        second = (await client.post("/api/trackers", json={"name": "Second"})).json()
        await client.put(f"/api/trackers/{second['id']}", json={"is_pinned": True})

        response = await client.get("/api/trackers")

        assert [t["id"] for t in response.json()] == [second["id"], first["id"]]

    async def test_delete_unknown_tracker(self, client: AsyncClient) -> None:
        response = await client.delete("/api/trackers/999")

        assert response.status_code == 404


class TestTrackerCards:
    async def test_progress_follows_collection(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)
        cards = await _cards(client, tracker["id"])

        await client.post("/api/collection", json={"card_id": cards[0]["card_id"]})
        await client.post("/api/collection", json={"card_id": cards[0]["card_id"]})
        await client.post("/api/collection", json={"card_id": cards[1]["card_id"], "is_foil": True})

        response = await client.get(f"/api/trackers/{tracker['id']}/cards")

        data = response.json()
        # A foil copy does not count towards a non-foil tracker
        assert data["tracker"]["collected_cards"] == 1
        assert data["tracker"]["completion_percentage"] == 33.3
        first, second, third = data["cards"]
        assert first["owned_quantity"] == 2
        assert first["is_collected"] is True
        assert second["owned_foil_quantity"] == 1
        assert second["is_collected"] is False
        assert second["is_foil_collected"] is True
        assert third["is_collected"] is False

    async def test_exclusion_toggles(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)
        card_id = (await _cards(client, tracker["id"]))[2]["card_id"]

        response = await client.post(f"/api/trackers/{tracker['id']}/cards/{card_id}/exclude")
        assert response.json() == {"card_id": card_id, "is_excluded": True}

        progress = (await client.get(f"/api/trackers/{tracker['id']}")).json()
        assert progress["total_cards"] == 2

        response = await client.post(f"/api/trackers/{tracker['id']}/cards/{card_id}/exclude")
        assert response.json()["is_excluded"] is False

    async def test_add_card_by_unknown_catalog_id_imports_its_set(
        self, client: AsyncClient, fake_catalog, catalog_card
    ) -> None:
        fake_catalog.add_set(
            "oth", [catalog_card("x", set_code="oth"), catalog_card("y", set_code="oth")]
        )
        tracker = (await client.post("/api/trackers", json={"name": "Custom"})).json()

        response = await client.post(
            f"/api/trackers/{tracker['id']}/cards", json={"scryfall_id": "x"}
        )

        assert response.status_code == 201
        assert response.json()["scryfall_id"] == "x"
        assert fake_catalog.fetched == ["oth"]
        cards = await _cards(client, tracker["id"])
        assert [c["scryfall_id"] for c in cards] == ["x"]

    async def test_duplicate_card_conflicts(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)
        card_id = (await _cards(client, tracker["id"]))[0]["card_id"]

        response = await client.post(
            f"/api/trackers/{tracker['id']}/cards", json={"card_id": card_id}
        )

        assert response.status_code == 409
        assert response.json()["kind"] == "conflict"

    async def test_add_requires_an_identifier(self, client: AsyncClient) -> None:
        tracker = (await client.post("/api/trackers", json={"name": "Custom"})).json()

        response = await client.post(f"/api/trackers/{tracker['id']}/cards", json={})

        assert response.status_code == 422

    async def test_add_unknown_local_card(self, client: AsyncClient) -> None:
        tracker = (await client.post("/api/trackers", json={"name": "Custom"})).json()

        response = await client.post(f"/api/trackers/{tracker['id']}/cards", json={"card_id": 42})

        assert response.status_code == 404

    async def test_remove_card(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)
        card_id = (await _cards(client, tracker["id"]))[0]["card_id"]

        response = await client.delete(f"/api/trackers/{tracker['id']}/cards/{card_id}")
        assert response.status_code == 204

        response = await client.delete(f"/api/trackers/{tracker['id']}/cards/{card_id}")
        assert response.status_code == 404
        assert len(await _cards(client, tracker["id"])) == 2

    async def test_export_missing(self, client: AsyncClient, tst_set) -> None:
        tracker = await _create_set_tracker(client)
        cards = await _cards(client, tracker["id"])
        await client.post("/api/collection", json={"card_id": cards[0]["card_id"]})

        response = await client.post(f"/api/trackers/{tracker['id']}/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "1 Beta (V.2) (Set TST)\n1 Gamma (V.3) (Set TST)"
