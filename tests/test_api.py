import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from eventflow import api
from eventflow.analytics.models import TrackEventRequest
from eventflow.bootstrap import populate_fake_data


@pytest_asyncio.fixture
async def client(services):
    await populate_fake_data(services)

    app = FastAPI()
    app.include_router(api.router)
    api.install_error_handlers(app)
    app.state.services = services

    @app.get("/forbidden")
    async def forbidden():
        raise PermissionError("not your order")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_search_orders(client):
    response = await client.get("/order")

    assert response.status_code == 200
    assert [o["order_id"] for o in response.json()] == ["123", "456", "789"]


@pytest.mark.asyncio
async def test_place_order(client, publisher):
    response = await client.put(
        "/order",
        json={"item_id": "ABC", "item_name": "Kit", "quantity": 2, "price": 100},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 200
    assert body["status"] == "PLACED"
    assert publisher.subjects() == ["payment.authorized", "order.placed"]


@pytest.mark.asyncio
async def test_invalid_order_request_is_a_server_error(client):
    response = await client.put(
        "/order", json={"item_id": "ABC", "quantity": "two", "price": 1}
    )

    assert response.status_code == 500
    assert response.json()["status"] == 500
    assert response.json()["message"].startswith("Invalid request")


@pytest.mark.asyncio
async def test_cancel_then_ship_is_a_server_error(client):
    cancelled = await client.delete("/order/456")
    assert cancelled.json()["status"] == "CANCELLED"

    response = await client.post("/order/456/shipping")

    assert response.status_code == 500
    assert response.json() == {
        "status": 500,
        "message": "Can't ship cancelled order: 456",
    }


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(client):
    response = await client.get("/order/nope")

    assert response.status_code == 404
    assert response.json()["status"] == 404
    assert "nope" in response.json()["message"]


@pytest.mark.asyncio
async def test_transactions(client):
    listed = await client.get("/transaction")
    assert [t["transaction_id"] for t in listed.json()] == ["X", "Y", "Z"]

    response = await client.post("/transaction/X/chargeback")
    assert response.json()["status"] == "CHARGEBACK"

    fetched = await client.get("/transaction/X")
    assert fetched.json()["status"] == "CHARGEBACK"


@pytest.mark.asyncio
async def test_analytics_summary(client, services):
    await services.analytics.track_event(TrackEventRequest(event="order.placed"))

    response = await client.get("/analytics")

    assert response.json() == {"order.placed": 1}


@pytest.mark.asyncio
async def test_permission_error_is_forbidden(client):
    response = await client.get("/forbidden")

    assert response.status_code == 403
    assert response.json() == {"status": 403, "message": "not your order"}
