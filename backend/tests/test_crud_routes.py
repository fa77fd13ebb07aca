"""
crudstore — CRUD Route Tests
============================

What:  End-to-end tests of the REST mapping for one collection ("car").
How:   HTTPX AsyncClient over ASGITransport; stores live in a temp directory.

What we test:
    ✅ Full create/list/get/update/delete cycle with status codes
    ✅ 404 + {"error"} body for unknown ids on GET, PUT and DELETE
    ✅ Path id wins over body id on PUT; body id ignored on POST
    ✅ Persistence failures map to 500 (or are hidden in best-effort mode)
    ✅ 503 while collections are not loaded; /health reporting
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from crudstore.config import Settings
from crudstore.main import create_app, init_stores


class TestCrudCycle:

    @pytest.mark.asyncio
    async def test_crud_a_car_via_rest(self, test_client):
        car = {"make": "Mercedes"}

        post_result = await test_client.post("/car", json=car)
        assert post_result.status_code == 201
        assert post_result.json() == {**car, "id": 0}

        get_all_result = await test_client.get("/car")
        assert get_all_result.status_code == 200
        assert get_all_result.json() == [{**car, "id": 0}]

        get_single_result = await test_client.get("/car/0")
        assert get_single_result.status_code == 200
        assert get_single_result.json() == {**car, "id": 0}

        updated_car = {**car, "make": "BMW"}
        put_result = await test_client.put("/car/0", json=updated_car)
        assert put_result.status_code == 200
        assert put_result.json() == {**updated_car, "id": 0}

        delete_result = await test_client.delete("/car/0")
        assert delete_result.status_code == 200
        assert (await test_client.get("/car")).json() == []

    @pytest.mark.asyncio
    async def test_404_for_operations_on_missing_entities(self, test_client):
        get_result = await test_client.get("/car/12345")
        assert get_result.status_code == 404
        assert "12345" in get_result.json()["error"]

        put_result = await test_client.put("/car/12345", json={})
        assert put_result.status_code == 404
        assert put_result.json()["error"] == "No object found with the given ID 12345"

        delete_result = await test_client.delete("/car/12345")
        assert delete_result.status_code == 404
        assert "error" in delete_result.json()

    @pytest.mark.asyncio
    async def test_post_ignores_body_id(self, test_client):
        response = await test_client.post("/car", json={"id": 41, "make": "Fiat"})
        assert response.json()["id"] == 0

    @pytest.mark.asyncio
    async def test_ids_increase_across_posts(self, test_client):
        ids = []
        for make in ["Audi", "BMW", "Citroen"]:
            ids.append((await test_client.post("/car", json={"make": make})).json()["id"])
        assert ids == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_put_forces_path_id_onto_body(self, test_client):
        await test_client.post("/car", json={"make": "Mercedes"})

        response = await test_client.put("/car/0", json={"id": 7, "make": "BMW"})

        assert response.status_code == 200
        assert response.json() == {"id": 0, "make": "BMW"}
        assert (await test_client.get("/car/7")).status_code == 404

    @pytest.mark.asyncio
    async def test_put_replaces_without_merging(self, test_client):
        await test_client.post("/car", json={"make": "Mercedes", "color": "black"})

        await test_client.put("/car/0", json={"make": "BMW"})

        assert (await test_client.get("/car/0")).json() == {"make": "BMW", "id": 0}

    @pytest.mark.asyncio
    async def test_trailing_slash_on_collection(self, test_client):
        assert (await test_client.post("/car/", json={"make": "Opel"})).status_code == 201
        response = await test_client.get("/car/")
        assert response.status_code == 200
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_writes_reach_the_collection_file(self, test_client, storage_dir):
        await test_client.post("/car", json={"make": "Mercedes"})

        on_disk = json.loads((storage_dir / "car.json").read_text(encoding="utf-8"))

        assert on_disk == [{"make": "Mercedes", "id": 0}]

    @pytest.mark.asyncio
    async def test_responses_do_not_share_state_with_store(self, app, test_client):
        await test_client.post("/car", json={"make": "Mercedes", "owners": ["Ann"]})

        body = (await test_client.get("/car/0")).json()
        body["owners"].append("Bob")

        assert app.state.stores["car"].get(0)["owners"] == ["Ann"]


class TestValidation:

    @pytest.mark.asyncio
    async def test_non_object_body_is_rejected(self, test_client):
        response = await test_client.post("/car", json=[1, 2, 3])
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_non_integer_id_is_rejected(self, test_client):
        assert (await test_client.get("/car/abc")).status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_collection(self, test_client):
        assert (await test_client.get("/boat")).status_code == 404


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_persistence_failure_returns_500(self, test_client):
        with patch(
            "crudstore.services.entity_store.aiofiles.os.replace",
            new_callable=AsyncMock,
            side_effect=OSError("No space left on device"),
        ):
            response = await test_client.post("/car", json={"make": "Mercedes"})

        assert response.status_code == 500
        assert "applied in memory" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_best_effort_mode_hides_write_failures(self, storage_dir):
        app = create_app(
            Settings(storage_root=str(storage_dir), collections="car", durability_mode="best_effort")
        )
        await init_stores(app)
        transport = ASGITransport(app=app)

        async with AsyncClient(transport=transport, base_url="http://test") as client:
            with patch(
                "crudstore.services.entity_store.aiofiles.os.replace",
                new_callable=AsyncMock,
                side_effect=OSError("No space left on device"),
            ):
                response = await client.post("/car", json={"make": "Mercedes"})

        assert response.status_code == 201
        assert response.json() == {"make": "Mercedes", "id": 0}

    @pytest.mark.asyncio
    async def test_uninitialized_collection_returns_503(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/car")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_lone_surrogate_does_not_block_later_writes(self, test_client, storage_dir):
        response = await test_client.post(
            "/car",
            content='{"make": "\\ud800"}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 500
        assert "cannot be stored" in response.json()["error"]

        response = await test_client.post("/car", json={"make": "BMW"})
        assert response.status_code == 201
        assert response.json() == {"make": "BMW", "id": 0}

        listed = (await test_client.get("/car")).json()
        assert listed == [{"make": "BMW", "id": 0}]
        assert json.loads((storage_dir / "car.json").read_text(encoding="utf-8")) == listed

    @pytest.mark.asyncio
    async def test_unexpected_error_carries_request_id(self, storage_dir):
        app = create_app(Settings(storage_root=str(storage_dir), collections="car"))

        @app.get("/explode")
        async def explode():
            raise RuntimeError("boom")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/explode", headers={"X-Request-ID": "trace-500"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "An unexpected error occurred.",
            "request_id": "trace-500",
        }
        assert response.headers["X-Request-ID"] == "trace-500"


class TestMiddleware:

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.get("/car")
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_client_request_id_is_echoed(self, test_client):
        response = await test_client.get("/car/99", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"
        assert response.json()["request_id"] == "trace-123"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_collection_sizes(self, test_client):
        await test_client.post("/car", json={"make": "Mercedes"})

        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["collections"] == {"car": 1}

    @pytest.mark.asyncio
    async def test_health_before_stores_are_loaded(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "starting"

    @pytest.mark.asyncio
    async def test_multiple_collections_use_separate_files(self, storage_dir):
        app = create_app(Settings(storage_root=str(storage_dir), collections="car,driver"))
        await init_stores(app)
        transport = ASGITransport(app=app)

        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post("/car", json={"make": "Mercedes"})
            await client.post("/driver", json={"name": "Ann"})
            await client.post("/driver", json={"name": "Bob"})
            health = (await client.get("/health")).json()

        assert health["collections"] == {"car": 1, "driver": 2}
        assert (storage_dir / "car.json").exists()
        assert (storage_dir / "driver.json").exists()
