"""Periodic maintenance sweeps for the MongoDB sink.

Two jobs run on the host's event loop:
- RetentionSweep deletes documents older than the retention window.
- FieldDiscoverySweep writes every distinct top-level field name into
  the companion `<collection>_keys` collection.

Both report failures in their output and never raise, so a broken sweep
cannot take the pipeline down with it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pymongo.asynchronous.collection import AsyncCollection

from logsink.observability.logging import get_logger
from logsink.observability.metrics import DOCUMENTS_EXPIRED, SWEEP_RUNS
from logsink.sink.normalize import format_timestamp

logger = get_logger(__name__)

CollectionProvider = Callable[[], Awaitable[AsyncCollection]]
Clock = Callable[[], datetime]


@dataclass
class SweepOutput:
    """Result of a single sweep run."""

    sweep: str
    success: bool
    affected: int = 0
    error: str | None = None


class RetentionSweep:
    """Delete documents whose retention field is older than the cutoff.

    The cutoff is `now - retention`, evaluated on every run. With
    `frozen_at` set it is `frozen_at - retention` on every run instead,
    so the effective window grows for as long as the sink lives.
    """

    SWEEP_NAME = "retention"

    def __init__(
        self,
        get_collection: CollectionProvider,
        *,
        retention: float,
        field: str,
        clock: Clock,
        frozen_at: datetime | None = None,
        verbose: bool = False,
    ) -> None:
        self._get_collection = get_collection
        self._retention = timedelta(seconds=retention)
        self._field = field
        self._clock = clock
        self._frozen_at = frozen_at
        self._verbose = verbose

    def cutoff(self) -> datetime:
        reference = self._frozen_at if self._frozen_at is not None else self._clock()
        return reference - self._retention

    async def run(self) -> SweepOutput:
        cutoff = format_timestamp(self.cutoff())
        collection_name = "unresolved"

        try:
            collection = await self._get_collection()
            collection_name = collection.name
            result = await collection.delete_many({self._field: {"$lt": cutoff}})
        except Exception as e:
            logger.warning(
                "retention_sweep_failed",
                collection=collection_name,
                cutoff=cutoff,
                error=str(e),
            )
            SWEEP_RUNS.labels(collection_name, self.SWEEP_NAME, "failure").inc()
            return SweepOutput(sweep=self.SWEEP_NAME, success=False, error=str(e))

        deleted = result.deleted_count
        DOCUMENTS_EXPIRED.labels(collection_name).inc(deleted)
        SWEEP_RUNS.labels(collection_name, self.SWEEP_NAME, "success").inc()
        if self._verbose:
            logger.info(
                "retention_sweep_completed",
                collection=collection_name,
                field=self._field,
                cutoff=cutoff,
                deleted=deleted,
            )
        return SweepOutput(sweep=self.SWEEP_NAME, success=True, affected=deleted)


class FieldDiscoverySweep:
    """Collect the distinct top-level field names of a collection.

    Output documents look like `{"_id": "<field>", "value": null}`, and the
    target collection is replaced on every run.
    """

    SWEEP_NAME = "field_discovery"

    def __init__(
        self,
        get_collection: CollectionProvider,
        *,
        target: str,
        verbose: bool = False,
    ) -> None:
        self._get_collection = get_collection
        self._target = target
        self._verbose = verbose

    def pipeline(self) -> list[dict[str, Any]]:
        return [
            {"$project": {"pairs": {"$objectToArray": "$$ROOT"}}},
            {"$unwind": "$pairs"},
            {"$group": {"_id": "$pairs.k"}},
            {"$project": {"value": {"$literal": None}}},
            {"$out": self._target},
        ]

    async def run(self) -> SweepOutput:
        collection_name = "unresolved"

        try:
            collection = await self._get_collection()
            collection_name = collection.name
            cursor = await collection.aggregate(self.pipeline())
            await cursor.to_list()
            discovered = await collection.database[self._target].count_documents({})
        except Exception as e:
            logger.warning(
                "field_discovery_failed",
                collection=collection_name,
                target=self._target,
                error=str(e),
            )
            SWEEP_RUNS.labels(collection_name, self.SWEEP_NAME, "failure").inc()
            return SweepOutput(sweep=self.SWEEP_NAME, success=False, error=str(e))

        SWEEP_RUNS.labels(collection_name, self.SWEEP_NAME, "success").inc()
        if self._verbose:
            logger.info(
                "field_discovery_completed",
                collection=collection_name,
                target=self._target,
                fields=discovered,
            )
        return SweepOutput(sweep=self.SWEEP_NAME, success=True, affected=discovered)


class PeriodicSweep:
    """Run a sweep job on the running event loop after a delay, then at a fixed interval.

    The loop ends once `is_alive` returns False or the task is cancelled
    by `stop()`.
    """

    def __init__(
        self,
        name: str,
        job: Callable[[], Awaitable[SweepOutput]],
        *,
        delay: float,
        interval: float,
        is_alive: Callable[[], bool],
    ) -> None:
        self.name = name
        self._job = job
        self._delay = delay
        self._interval = interval
        self._is_alive = is_alive
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep on the running loop. Calling twice is a no-op."""
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"logsink-{self.name}-sweep"
        )
        logger.debug(
            "sweep_scheduled",
            sweep=self.name,
            delay=self._delay,
            interval=self._interval,
        )

    async def stop(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        await asyncio.sleep(self._delay)
        while self._is_alive():
            await self._job()
            self.runs += 1
            await asyncio.sleep(self._interval)
