"""Fixtures for MongoDB integration tests.

Tests skip when no server answers at TEST_MONGODB_URL
(run 'docker run -d -p 27017:27017 mongo:7' to provide one).
"""

import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

TEST_DATABASE = "log_test"


@pytest.fixture(scope="session")
def mongodb_url() -> str:
    """Get MongoDB URL for tests."""
    return os.environ.get("TEST_MONGODB_URL", "mongodb://localhost:27017")


@pytest_asyncio.fixture
async def mongo_client(mongodb_url: str) -> AsyncIterator[AsyncMongoClient]:
    """Create a client for tests, skipping when MongoDB is not reachable.

    Uses function scope to avoid event loop issues across tests.
    """
    client: AsyncMongoClient = AsyncMongoClient(mongodb_url, serverSelectionTimeoutMS=2000)
    try:
        await client.admin.command("ping")
    except PyMongoError:
        await client.close()
        pytest.skip(f"MongoDB not available at {mongodb_url}")

    yield client

    await client.close()


@pytest_asyncio.fixture
async def log_database(mongo_client: AsyncMongoClient) -> AsyncIterator[AsyncDatabase]:
    """Fresh test database, dropped before and after each test."""
    await mongo_client.drop_database(TEST_DATABASE)
    yield mongo_client[TEST_DATABASE]
    await mongo_client.drop_database(TEST_DATABASE)
