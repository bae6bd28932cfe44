"""Pytest configuration and fixtures."""
import os

# Settings are read at import time; point them at test collaborators first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_PROVIDER"] = "local_stub"
os.environ["AUTH_PROVIDER"] = "local_stub"
os.environ["LOG_FORMAT"] = "text"
os.environ["ENV"] = "dev"

import pytest
from fastapi.testclient import TestClient

import ensogrow.models  # noqa: F401
from ensogrow.db import Base, SessionLocal, engine, get_db
from ensogrow.main import app

from factories import SURVEY, bearer, fenced, plant_payload


class FakeAdvisor:
    """Scripted stand-in for the generative model."""

    def __init__(self):
        self.responses = []
        self.prompts = []
        self.images = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def _next(self):
        if not self.responses:
            raise AssertionError("FakeAdvisor has no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._next()

    async def analyze_image(self, prompt: str, image_base64: str, mime_type: str = "image/jpeg") -> str:
        self.prompts.append(prompt)
        self.images.append((image_base64, mime_type))
        return self._next()

    async def close(self) -> None:
        pass


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def advisor():
    return FakeAdvisor()


@pytest.fixture(scope="function")
def client(db_session, advisor):
    """Create a test client with overridden database and AI dependencies."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.advisor = advisor
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return bearer("alice-uid", "alice@example.com")


@pytest.fixture
def bob():
    return bearer("bob-uid", "bob@example.com")


@pytest.fixture
def alice_plant(client, advisor, alice):
    """One custom plant owned by alice, returned as response data."""
    advisor.queue(fenced(plant_payload("Basil", "90%", steps=3)))
    response = client.post(
        "/api/plants/custom",
        json={**SURVEY, "plantName": "Basil"},
        headers=alice,
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]
