"""Driver doubles for sink unit tests.

The mocks mirror the slice of the pymongo async API the sink touches:
client[db] -> database, database[name] -> collection, plus the awaited
collection methods.
"""

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from logsink.sink.mongodb import MongoLogSink


@pytest.fixture
def keys_collection() -> MagicMock:
    keys = MagicMock()
    keys.count_documents = AsyncMock(return_value=4)
    return keys


@pytest.fixture
def mock_collection(keys_collection: MagicMock) -> MagicMock:
    collection = MagicMock()
    collection.name = "logs"
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="id-1"))
    collection.create_index = AsyncMock(
        side_effect=lambda keys, **_: "_".join(f"{field}_{direction}" for field, direction in keys)
    )
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=3))

    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    collection.aggregate = AsyncMock(return_value=cursor)
    collection.database.__getitem__.return_value = keys_collection
    return collection


@pytest.fixture
def mock_database(mock_collection: MagicMock) -> MagicMock:
    database = MagicMock()
    database.command = AsyncMock(return_value={"ok": 1.0})
    database.__getitem__.return_value = mock_collection
    return database


@pytest.fixture
def mock_client(mock_database: MagicMock) -> MagicMock:
    client = MagicMock()
    client.__getitem__.return_value = mock_database
    client.close = AsyncMock()
    return client


@pytest_asyncio.fixture
async def make_sink(mock_client: MagicMock) -> AsyncIterator[Callable[..., MongoLogSink]]:
    """Build sinks on the mock client and close them after the test.

    Defaults to retention 0 and verbose off; a long sweep delay keeps
    scheduled sweeps from firing mid-test.
    """
    sinks: list[MongoLogSink] = []

    def _make(**options: Any) -> MongoLogSink:
        options.setdefault("database", "log_test")
        options.setdefault("collection", "logs")
        options.setdefault("retention", 0)
        options.setdefault("verbose", False)
        options.setdefault("sweep_delay", 3600)
        options.setdefault("client", mock_client)
        sink = MongoLogSink.from_options(**options)
        sinks.append(sink)
        return sink

    yield _make

    for sink in sinks:
        await sink.close()
