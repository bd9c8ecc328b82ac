"""
Shared pytest fixtures.

Every test gets a fresh in-memory MongoDB (mongomock-motor) wired into the
app through ``dependency_overrides``; the lifespan hook is never entered, so
no real server is contacted.

Fixture overview
----------------
mock_db   -- empty AsyncMongoMockClient database
client    -- TestClient bound to mock_db
alice/bob -- registered users: {"user_id", "token", "headers", "user"}
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from blogsphere.database import get_db
from main import app


def run(coro):
    """Drive a coroutine against mock_db from a synchronous test"""
    return asyncio.run(coro)


def register(client, name, email, password="secret-pass"):
    response = client.post("/api/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    data = response.json()
    return {
        "user_id": data["user"]["user_id"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
        "user": data["user"],
    }


def create_post(client, author, title="Hello", content="First *post*", **extra):
    response = client.post(
        "/api/create-post",
        json={"title": title, "content": content, **extra},
        headers=author["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["post"]


@pytest.fixture
def mock_db():
    return AsyncMongoMockClient()["blogsphere_test"]


@pytest.fixture
def client(mock_db):
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice(client):
    return register(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client):
    return register(client, "Bob", "bob@example.com")
