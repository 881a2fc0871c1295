"""MongoDB output for message-passing log pipelines.

MongoLogSink receives one record at a time from the upstream pipeline and
inserts it into a collection. The client, the database handle and the
collection (with its indexes) are created on first use and kept for the
sink's lifetime. Retention cleanup and field discovery run as periodic
tasks on the same event loop.

Usage:
    sink = MongoLogSink.from_options(
        hostname="localhost", database="log_database", collection="logs"
    )
    async with sink:
        await sink.consume({"foo": "bar"})
"""

import asyncio
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import ConfigurationError, OperationFailure, PyMongoError

from logsink.config.models.sink import MongoSinkConfig
from logsink.db.errors import AuthenticationError, ConnectionError, StoreError
from logsink.observability.logging import get_logger
from logsink.observability.metrics import RECORD_INSERT_FAILURES, RECORDS_INSERTED
from logsink.sink.normalize import normalize_record
from logsink.sink.sweeps import FieldDiscoverySweep, PeriodicSweep, RetentionSweep

logger = get_logger(__name__)

# AuthenticationFailed, Unauthorized
AUTH_FAILURE_CODES = frozenset({18, 13})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MongoLogSink:
    """Pipeline output that persists records into a MongoDB collection.

    `consume` never raises except for rejected credentials, which abort
    the pipeline. Insert, index and sweep failures are logged and the
    sink carries on; there is no retry.
    """

    def __init__(
        self,
        config: MongoSinkConfig,
        *,
        client: AsyncMongoClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            config: Sink configuration
            client: Pre-built client to use instead of creating one
            clock: Source of the current UTC time (for timestamps and cutoffs)
        """
        self._config = config
        self._clock = clock or _utcnow
        self._started_at = self._clock()

        self._client = client
        self._owns_client = client is None
        self._database: AsyncDatabase | None = None
        self._collection: AsyncCollection | None = None
        self._init_lock = asyncio.Lock()

        self._inserted = 0
        self._closed = False
        self._sweeps: list[PeriodicSweep] = []
        self._sweeps_scheduled = False

        self.retention_sweep: RetentionSweep | None = None
        if config.retention:
            self.retention_sweep = RetentionSweep(
                self.resolve_collection,
                retention=config.retention,
                field=config.effective_retention_field,
                clock=self._clock,
                frozen_at=self._started_at if config.freeze_retention_cutoff else None,
                verbose=config.verbose,
            )

        self.field_sweep: FieldDiscoverySweep | None = None
        if config.collect_fields:
            self.field_sweep = FieldDiscoverySweep(
                self.resolve_collection,
                target=config.keys_collection,
                verbose=config.verbose,
            )

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; start() or the first consume() schedules the sweeps.
            pass
        else:
            self._schedule_sweeps()

    @classmethod
    def from_options(
        cls,
        *,
        client: AsyncMongoClient | None = None,
        clock: Callable[[], datetime] | None = None,
        **options: Any,
    ) -> "MongoLogSink":
        """Build a sink from the flat option mapping a pipeline passes.

        Raises:
            pydantic.ValidationError: If required options are missing or invalid
        """
        return cls(MongoSinkConfig.model_validate(options), client=client, clock=clock)

    @property
    def config(self) -> MongoSinkConfig:
        return self._config

    @property
    def inserted_count(self) -> int:
        """Successful insertions counted while verbose."""
        return self._inserted

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    @property
    def is_ready(self) -> bool:
        return self._collection is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def sweeps(self) -> list[PeriodicSweep]:
        return list(self._sweeps)

    def _build_client(self) -> AsyncMongoClient:
        options: dict[str, Any] = {
            "serverSelectionTimeoutMS": self._config.server_selection_timeout_ms,
        }
        if self._config.has_credentials:
            options["username"] = self._config.username
            options["password"] = self._config.password
            options["authSource"] = self._config.auth_source or self._config.database
        options.update(self._config.connection_options)

        return AsyncMongoClient(
            host=self._config.hostname,
            port=self._config.port,
            **options,
        )

    async def connect(self) -> AsyncDatabase:
        """Open the connection once and return the target database.

        Raises:
            AuthenticationError: If the server rejects the credentials
            ConnectionError: If the server cannot be reached or the client options are invalid
        """
        if self._database is not None:
            return self._database

        async with self._init_lock:
            if self._database is None:
                self._database = await self._open_database()
        return self._database

    async def _open_database(self) -> AsyncDatabase:
        try:
            if self._client is None:
                self._client = self._build_client()
        except (ConfigurationError, TypeError, ValueError) as e:
            # unknown or malformed connection_options, unresolvable SRV host
            logger.error(
                "mongodb_client_misconfigured",
                host=self._config.hostname,
                error=str(e),
            )
            raise ConnectionError(f"Invalid MongoDB client configuration: {e}", cause=e) from e

        database = self._client[self._config.database]
        try:
            await database.command("ping")
        except OperationFailure as e:
            if self._config.has_credentials and e.code in AUTH_FAILURE_CODES:
                logger.error(
                    "mongodb_authentication_failed",
                    host=self._config.hostname,
                    database=self._config.database,
                    username=self._config.username,
                )
                raise AuthenticationError("MongoDB authentication failure", cause=e) from e
            raise ConnectionError(f"MongoDB ping failed: {e}", cause=e) from e
        except PyMongoError as e:
            logger.warning(
                "mongodb_connection_failed",
                host=self._config.hostname,
                port=self._config.port,
                error=str(e),
            )
            raise ConnectionError(f"Failed to connect to MongoDB: {e}", cause=e) from e

        logger.info(
            "mongodb_connected",
            host=self._config.hostname,
            port=self._config.port,
            database=self._config.database,
            authenticated=self._config.has_credentials,
        )
        return database

    async def resolve_collection(self) -> AsyncCollection:
        """Return the target collection, applying indexes the first time."""
        if self._collection is not None:
            return self._collection

        database = await self.connect()
        async with self._init_lock:
            if self._collection is None:
                collection = database[self._config.collection]
                await self._apply_indexes(collection)
                self._collection = collection
        return self._collection

    async def _apply_indexes(self, collection: AsyncCollection) -> None:
        for index in self._config.indexes:
            try:
                name = await collection.create_index(index.key_list(), **index.options)
            except PyMongoError as e:
                logger.warning(
                    "index_ensure_failed",
                    collection=self._config.collection,
                    keys=index.keys,
                    options=index.options,
                    error=str(e),
                )
                continue

            if self._config.verbose:
                logger.info(
                    "index_ensured",
                    collection=self._config.collection,
                    index=name,
                    keys=index.keys,
                    options=index.options,
                )

    def _prepare(self, record: Mapping[str, Any]) -> dict[str, Any]:
        if self._config.normalize:
            return normalize_record(record, now=self._clock()).to_document()
        # insert_one adds _id to the mapping it is given
        return dict(record)

    async def consume(self, record: Mapping[str, Any] | None) -> None:
        """Insert one record.

        Empty records are ignored. Failures are logged with the rejected
        document and swallowed.

        Raises:
            AuthenticationError: If the lazy connection is refused credentials
        """
        if not record or self._closed:
            return

        self._schedule_sweeps()
        try:
            document = self._prepare(record)
        except ValueError as e:
            # self-referencing values cannot be serialized
            logger.warning("record_rejected", error=str(e), record=repr(record))
            RECORD_INSERT_FAILURES.labels(self._config.collection).inc()
            return

        try:
            collection = await self.resolve_collection()
        except AuthenticationError:
            raise
        except StoreError as e:
            logger.warning("record_dropped", error=str(e), document=document)
            RECORD_INSERT_FAILURES.labels(self._config.collection).inc()
            return

        try:
            await collection.insert_one(document)
        except (PyMongoError, BSONError) as e:
            logger.warning("record_insert_failed", error=str(e), document=document)
            RECORD_INSERT_FAILURES.labels(self._config.collection).inc()
            return

        RECORDS_INSERTED.labels(self._config.collection).inc()
        if self._config.verbose:
            self._inserted += 1
            logger.info(
                "records_inserted",
                collection=self._config.collection,
                total=self._inserted,
            )

    def _schedule_sweeps(self) -> None:
        if self._sweeps_scheduled or self._closed:
            return
        self._sweeps_scheduled = True

        jobs = [job for job in (self.retention_sweep, self.field_sweep) if job is not None]
        for job in jobs:
            sweep = PeriodicSweep(
                job.SWEEP_NAME,
                job.run,
                delay=self._config.sweep_delay,
                interval=self._config.sweep_interval,
                is_alive=lambda: not self._closed,
            )
            sweep.start()
            self._sweeps.append(sweep)

    async def start(self) -> "MongoLogSink":
        """Connect eagerly and schedule the sweeps.

        Raises:
            AuthenticationError: If the server rejects the credentials
            ConnectionError: If the server cannot be reached
        """
        await self.resolve_collection()
        self._schedule_sweeps()
        return self

    async def close(self) -> None:
        """Stop the sweeps and release the client. Later records are ignored."""
        if self._closed:
            return
        self._closed = True

        for sweep in self._sweeps:
            await sweep.stop()

        if self._client is not None and self._owns_client:
            await self._client.close()

        logger.info(
            "mongodb_sink_closed",
            collection=self._config.collection,
            inserted=self._inserted,
        )

    async def __aenter__(self) -> "MongoLogSink":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
