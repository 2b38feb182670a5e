import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from helpmate.main import app
from helpmate.db.mongo import use_database
from helpmate.services.context_service import set_context_builder
from helpmate.services.llm_service import LLMService, set_llm_service
from helpmate.services.scraper_service import ScraperService, set_scraper_service
from helpmate.services.session_store import scrape_cache, session_store


@pytest.fixture(autouse=True)
def db():
    """Fresh in-memory database per test."""
    mongo_client = AsyncMongoMockClient()
    database = mongo_client["helpmate_test"]
    use_database(database, mongo_client)
    yield database
    use_database(None)


@pytest.fixture(autouse=True)
def clean_memory_stores():
    yield
    asyncio.run(session_store.clear())
    asyncio.run(scrape_cache.clear())
    set_context_builder(None)


@pytest.fixture(autouse=True)
def fake_llm():
    llm = LLMService(api_key="test-key")
    llm.complete = AsyncMock(return_value="Happy to help!")
    llm.generate_title = AsyncMock(return_value="Shipping Question")
    llm.summarize = AsyncMock(return_value="Summary of the remaining pages.")
    set_llm_service(llm)
    yield llm
    set_llm_service(None)


@pytest.fixture(autouse=True)
def fake_scraper():
    scraper = ScraperService()
    scraper.fetch_pages = AsyncMock(return_value={})
    set_scraper_service(scraper)
    yield scraper
    set_scraper_service(None)


@pytest.fixture
def client():
    return TestClient(app)


def register(client, email="owner@shop.com", name="Shop Owner", password="secret123"):
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def register_user(client):
    def _register(**kwargs):
        return register(client, **kwargs)
    return _register


@pytest.fixture
def auth_headers(client):
    data = register(client)
    return {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
def other_headers(client):
    data = register(client, email="someone@else.com", name="Someone Else")
    return {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
def integration(client, auth_headers):
    response = client.post(
        "/api/integration/",
        json={"name": "Mug Shop", "domain": "https://www.shop.com"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["integration"]
