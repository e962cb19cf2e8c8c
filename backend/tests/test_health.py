import pytest


@pytest.mark.anyio
async def test_health_returns_ok(client):
    response = await client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["database"] == "ok"
