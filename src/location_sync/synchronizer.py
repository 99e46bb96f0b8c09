# src/location_sync/synchronizer.py
"""Core orchestration logic for one location-to-location sync."""

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from location_sync.config import SyncConfig
from location_sync.diff import KeyTranslator, PrefixTranslator, compare
from location_sync.executor import CopyExecutor
from location_sync.lister import list_objects
from location_sync.models import ComparisonResult, ObjectRecord, SyncReport
from location_sync.parallel import TaskOutcome, run_bounded

logger: logging.Logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Phases of a single `start_syncing` run."""

    INIT = "init"
    COMPARE = "compare"
    COPYING = "copying"
    VERIFY = "verify"
    DONE = "done"


class LocationSynchronizer:
    """
    Makes a destination prefix converge to the contents of a source prefix.

    A run lists both sides, copies whatever is missing or stale under
    bounded concurrency, then lists and compares again. Only that second
    comparison decides the result; individual copy failures are tallied
    and left for the verification pass to catch.
    """

    def __init__(self, config: SyncConfig) -> None:
        """
        Initializes the synchronizer with a validated configuration.

        Args:
            config (SyncConfig): The run configuration. Reused across runs.
        """
        self._config: SyncConfig = config
        self.state: SyncState = SyncState.INIT
        self.last_result: Optional[ComparisonResult] = None
        self.last_report: Optional[SyncReport] = None

    def update_source_prefix(self, prefix: str) -> None:
        """
        Changes the source prefix for subsequent runs.

        Must not be called while a run is in flight.
        """
        self._config.source.update_prefix(prefix)

    def update_destination_prefix(self, prefix: str) -> None:
        """
        Changes the destination prefix for subsequent runs.

        Must not be called while a run is in flight.
        """
        self._config.destination.update_prefix(prefix)

    def _key_translator(self) -> KeyTranslator:
        return PrefixTranslator(
            self._config.source.prefix, self._config.destination.prefix
        )

    async def compare_source_and_destination(self) -> ComparisonResult:
        """
        Lists both locations concurrently and classifies every source object.

        Returns:
            ComparisonResult: The classification of the current state.

        Raises:
            StoreAccessError: If either listing fails.
        """
        source_map: Dict[str, ObjectRecord]
        dest_map: Dict[str, ObjectRecord]
        listings: List["asyncio.Task[Dict[str, ObjectRecord]]"] = [
            asyncio.create_task(
                list_objects(self._config.source, self._config.list_max_attempts)
            ),
            asyncio.create_task(
                list_objects(self._config.destination, self._config.list_max_attempts)
            ),
        ]
        try:
            source_map, dest_map = await asyncio.gather(*listings)
        except BaseException:
            # The surviving listing must not keep paging after the run aborts.
            for task in listings:
                task.cancel()
            await asyncio.gather(*listings, return_exceptions=True)
            raise
        result: ComparisonResult = compare(source_map, dest_map, self._key_translator())
        self.last_result = result
        return result

    async def start_syncing(self) -> bool:
        """
        Runs one full convergence cycle.

        Returns:
            bool: True if the destination matches the source afterwards,
                False if some objects still differ after copying.

        Raises:
            StoreAccessError: If listing either location fails.
        """
        source_desc: str = self._config.source.describe()
        dest_desc: str = self._config.destination.describe()
        logger.info(f"Syncing [{source_desc} ---> {dest_desc}]")

        self.state = SyncState.COMPARE
        result: ComparisonResult = await self.compare_source_and_destination()

        if result.is_converged:
            logger.info(
                f"Nothing to copy; {len(result.unchanged)} objects already in sync."
            )
            self.state = SyncState.DONE
            return True

        logger.info(
            f"Found {len(result.needs_copy)} missing and "
            f"{len(result.conflicting)} conflicting objects "
            f"({len(result.unchanged)} unchanged)."
        )

        self.state = SyncState.COPYING
        self.last_report = await self._run_copies(result.pending)

        logger.info("Verifying...")
        self.state = SyncState.VERIFY
        result = await self.compare_source_and_destination()
        logger.debug(
            f"Verification result: needs_copy={[r.key for r in result.needs_copy]}, "
            f"conflicting={[r.key for r in result.conflicting]}"
        )
        self.state = SyncState.DONE

        if result.is_converged:
            logger.info(f"[{dest_desc}] now matches [{source_desc}].")
        else:
            logger.warning(
                f"Sync did not converge: {len(result.needs_copy)} missing and "
                f"{len(result.conflicting)} conflicting objects remain."
            )
        return result.is_converged

    async def _run_copies(self, records: List[ObjectRecord]) -> SyncReport:
        """
        Copies every record with at most `max_concurrency` copies in flight.

        Args:
            records (List[ObjectRecord]): The source objects to copy.

        Returns:
            SyncReport: How many copies succeeded and which keys failed.
        """
        executor: CopyExecutor = CopyExecutor(
            self._config.source,
            self._config.destination,
            max_retries=self._config.max_retries,
            retry_delay_s=self._config.retry_delay_s,
            key_translate=self._key_translator(),
        )
        express: bool = self._config.express

        async def copy_record(record: ObjectRecord) -> bool:
            return await executor.copy(record.key, record.size, express=express)

        progress: Progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            transient=True,
        )

        with progress:
            task_id: TaskID = progress.add_task("Copying...", total=len(records))

            def advance(_: TaskOutcome[ObjectRecord, bool]) -> None:
                progress.update(task_id, advance=1)

            outcomes: List[TaskOutcome[ObjectRecord, bool]] = await run_bounded(
                copy_record,
                records,
                self._config.max_concurrency,
                on_done=advance,
            )

        copied: List[str] = [o.item.key for o in outcomes if o.ok and o.result]
        failed: List[str] = [o.item.key for o in outcomes if not (o.ok and o.result)]
        logger.info(f"Copied {len(copied)} of {len(records)} objects.")
        if failed:
            logger.warning(f"{len(failed)} objects could not be copied: {failed[:10]}")
        return SyncReport(attempted=len(records), copied=len(copied), failed=failed)

