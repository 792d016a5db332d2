import pytest
from sqlalchemy.exc import OperationalError


@pytest.mark.anyio("asyncio")
async def test_healthcheck(client):
    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["db_status"] == "ok"
    assert payload["migrations_status"] == "up_to_date"
    assert payload["db_ok"] is True
    assert payload["migrations_ok"] is True
    assert payload["stripe"] == {
        "enabled": True,
        "api_key_configured": True,
        "webhook_configured": True,
    }
    assert payload["email_configured"] is False


@pytest.mark.anyio("asyncio")
async def test_health_degrades_on_db_failure(monkeypatch, client):
    class BrokenEngine:
        def connect(self):  # pragma: no cover - simple stub
            raise OperationalError("SELECT 1", {}, Exception("DB down"))

    monkeypatch.setattr("giftsplit.routers.health.get_engine", lambda: BrokenEngine())

    response = await client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["db_status"] == "error"
    assert payload["migrations_status"] == "unknown"
    assert payload["db_ok"] is False
    assert payload["migrations_ok"] is False
