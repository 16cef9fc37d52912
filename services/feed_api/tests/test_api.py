"""Tests for the feed API endpoints."""
import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from services.feed_api.app import main
from services.feed_api.app.main import (app, get_orchestrator,
                                        get_session_factory)
from services.generator.app import crud
from services.generator.app.orchestrator import (GenerationOrchestrator,
                                                 PersistenceError)
from services.generator.app.profiles import get_profile
from services.generator.app.sources.base import SourceAdapter
from shared.schemas.feed import Category, FeedEntry, Link


class OneBookAdapter(SourceAdapter):
    name = "books"
    category = Category.BOOK

    async def fetch(self, ctx):
        return [
            FeedEntry(
                group_key=ctx.group_key,
                category=self.category,
                title=f"Book for {ctx.group_key}",
                image_url="https://img.example/cover.jpg",
                links=[Link(label="More Info", url="https://b.example/1")],
                metadata={"author": "Someone"},
            )
        ]


class BrokenOrchestrator:
    async def run(self, group_key):
        raise PersistenceError("database is down")


@pytest.fixture
def client(session_factory):
    def orchestrator():
        return GenerationOrchestrator(
            get_profile("daily"),
            session_factory=session_factory,
            adapters=[OneBookAdapter()],
            client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404))),
        )

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_orchestrator] = orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_liveness(client):
    response = client.get("/api/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive", "service": "feed_api"}


def test_metrics_exposed(client):
    response = client.get("/api/metrics")
    assert response.status_code == 200
    assert "discovery_cycles_total" in response.text


@pytest.mark.parametrize("path", ["/api/feed/2024-3-1", "/api/feed/03-01", "/api/feed/2023-02-29"])
def test_feed_rejects_malformed_dates(client, path):
    response = client.get(path)
    assert response.status_code == 400


def test_feed_error_message(client):
    assert client.get("/api/feed/yesterday").json() == {"detail": "Date must be YYYY-MM-DD format"}


def test_generate_then_read_back(client):
    response = client.post("/api/generate", json={"date": "2024-03-01"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["date"] == "2024-03-01"
    assert body["count"] == 1
    assert body["results"] == [{"date": "2024-03-01", "count": 1, "categories": {"book": 1}, "failed": []}]

    feed = client.get("/api/feed/2024-03-01").json()
    assert feed["date"] == "2024-03-01"
    assert feed["count"] == 1
    item = feed["items"][0]
    assert item["type"] == "book"
    assert item["date"] == "2024-03-01"
    assert item["imageUrl"] == "https://img.example/cover.jpg"
    assert item["links"] == [{"label": "More Info", "url": "https://b.example/1"}]
    assert item["metadata"] == {"author": "Someone"}
    assert "createdAt" in item

    assert client.get("/api/dates").json() == ["2024-03-01"]


def test_generate_without_body_uses_today(client):
    response = client.post("/api/generate")
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert client.get("/api/dates").json() == [response.json()["date"]]


def test_generate_releases_per_key_locks(client):
    for key in ("2024-03-01", "2024-03-02", "2024-03-01"):
        assert client.post("/api/generate", json={"date": key}).status_code == 200
    assert main._cycle_locks == {}
    assert main._lock_users == {}


async def test_cycle_lock_serializes_one_key():
    order = []

    async def cycle(name):
        async with main.cycle_lock("2024-03-01"):
            order.append(f"{name} start")
            await asyncio.sleep(0.01)
            order.append(f"{name} end")

    await asyncio.gather(cycle("a"), cycle("b"))
    assert order == ["a start", "a end", "b start", "b end"]
    assert "2024-03-01" not in main._cycle_locks

def test_generate_rejects_bad_date(client):
    response = client.post("/api/generate", json={"date": "03/01/2024"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Date must be YYYY-MM-DD format"


def test_generate_storage_failure_is_500(client):
    app.dependency_overrides[get_orchestrator] = lambda: BrokenOrchestrator()
    response = client.post("/api/generate", json={"date": "2024-03-01"})
    assert response.status_code == 500


def test_whole_feed_lists_every_day(client):
    client.post("/api/generate", json={"date": "2024-03-02"})
    client.post("/api/generate", json={"date": "2024-03-01"})
    feed = client.get("/api/feed").json()
    assert feed["date"] is None
    assert [i["date"] for i in feed["items"]] == ["2024-03-01", "2024-03-02"]


def test_events_split_by_kind(client, session_factory):
    crud.persist_cycle(session_factory, "03-01", [
        FeedEntry(group_key="03-01", category=Category.EVENT, title="1969: Moon", event_year="1969"),
        FeedEntry(group_key="03-01", category=Category.BIRTH, title="1815: Ada", event_year="1815"),
    ], replace=False, upsert_on_year=True)

    body = client.get("/api/events/03-01").json()
    assert body["date"] == "03-01"
    assert body["count"] == 2
    assert body["generatedAt"] is not None
    assert [e["year"] for e in body["events"]] == ["1969"]
    assert [e["title"] for e in body["births"]] == ["1815: Ada"]
    assert body["deaths"] == []


def test_events_empty_day_and_bad_key(client):
    body = client.get("/api/events/12-25").json()
    assert body["count"] == 0
    assert body["generatedAt"] is None

    response = client.get("/api/events/2024-12-25")
    assert response.status_code == 400
    assert response.json()["detail"] == "Date must be MM-DD format"


def test_dedup_endpoint(client, session_factory):
    crud.persist_cycle(session_factory, "2024-03-01", [
        FeedEntry(group_key="2024-03-01", category=Category.BOOK, title="Deep Work"),
    ], replace=False)
    crud.persist_cycle(session_factory, "2024-03-02", [
        FeedEntry(group_key="2024-03-02", category=Category.BOOK, title="deep work"),
    ], replace=False)

    assert client.post("/api/dedup").json() == {"deleted": 1, "remaining": 1}
    assert client.post("/api/dedup").json() == {"deleted": 0, "remaining": 1}
