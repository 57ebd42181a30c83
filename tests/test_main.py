from unittest.mock import MagicMock

import pytest


@pytest.mark.asyncio
async def test_root(test_client):
    response = await test_client.get("/")

    assert response.json() == {"name": "Comments API", "status": "ok"}


@pytest.mark.asyncio
async def test_database_report_without_database(test_client):
    response = await test_client.get("/test")

    body = response.json()
    assert response.status_code == 200
    assert body["connection_status"] == "Not Connected"
    assert body["database_url"] == "❌ Not Set"
    assert body["collections"] == []


@pytest.mark.asyncio
async def test_database_report_lists_collections(test_client, monkeypatch):
    import database

    fake_db = MagicMock()
    fake_db.name = "appdb"
    fake_db.list_collection_names.return_value = ["comments", "users"]
    monkeypatch.setattr(database, "db", fake_db)

    body = (await test_client.get("/test")).json()

    assert body["connection_status"] == "Connected"
    assert body["database_name"] == "❌ Not Set"
    assert body["collections"] == ["comments", "users"]
