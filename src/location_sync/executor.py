# src/location_sync/executor.py
"""
Defines the single-object copy executor.

An object is either copied server-side by the destination store (express)
or streamed: read from the source store and uploaded to the destination.
Each attempt restarts the whole object; a key that fails every attempt is
logged and reported through the return value, never raised.
"""

import logging
import time
from typing import Optional

from location_sync.config import Location
from location_sync.diff import KeyTranslator, PrefixTranslator
from location_sync.exceptions import CopyExhaustedError, StoreAccessError
from location_sync.retry import AttemptResult, attempt

logger: logging.Logger = logging.getLogger(__name__)


class CopyExecutor:
    """Copies single objects from one location to another with retries."""

    def __init__(
        self,
        source: Location,
        destination: Location,
        max_retries: int = 5,
        retry_delay_s: float = 0.0,
        key_translate: Optional[KeyTranslator] = None,
    ) -> None:
        """
        Initializes the executor.

        Args:
            source (Location): Where objects are read from.
            destination (Location): Where objects are written to.
            max_retries (int): Attempts per object before giving up.
            retry_delay_s (float): Pause between attempts.
            key_translate (KeyTranslator, optional): Maps a source key to its
                destination key. Defaults to swapping the two prefixes.
        """
        self._source: Location = source
        self._destination: Location = destination
        self._max_retries: int = max_retries
        self._retry_delay_s: float = retry_delay_s
        self._key_translate: KeyTranslator = key_translate or PrefixTranslator(
            source.prefix, destination.prefix
        )

    async def copy(self, key: str, size: int, express: bool = False) -> bool:
        """
        Copies one object, retrying the same strategy on failure.

        Args:
            key (str): The source object key.
            size (int): The source object size in bytes.
            express (bool): Use a server-side copy instead of streaming.

        Returns:
            bool: True if an attempt succeeded, False once retries ran out.

        Raises:
            Exception: Any error other than `StoreAccessError`, unretried.
        """
        dst_key: str = self._key_translate(key)
        mode: str = "Express" if express else "Slow"
        route: str = (
            f"[{self._source.bucket}/{key} ---> {self._destination.bucket}/{dst_key}]"
        )
        logger.debug(f"{mode} copying {route}")

        async def _copy_once() -> None:
            if express:
                await self._express_copy(key, dst_key)
            else:
                await self._streamed_copy(key, dst_key, size)

        start_time: float = time.monotonic()
        result: AttemptResult[None] = await attempt(
            _copy_once,
            max_retries=self._max_retries,
            delay_s=self._retry_delay_s,
            retry_on=(StoreAccessError,),
            description=f"{mode.lower()} copy {route}",
        )
        if not result.ok:
            error: CopyExhaustedError = CopyExhaustedError(key, result.attempts)
            logger.error(f"{error} Last error: {result.error}")
            return False

        logger.debug(
            f"Finished {mode.lower()} copying {route} in "
            f"{time.monotonic() - start_time:.2f}s ({result.attempts} attempt(s))"
        )
        return True

    async def _express_copy(self, key: str, dst_key: str) -> None:
        """Asks the destination store to copy the object itself."""
        await self._destination.store.server_side_copy(
            self._source.bucket, key, self._destination.bucket, dst_key
        )

    async def _streamed_copy(self, key: str, dst_key: str, size: int) -> None:
        """Pipes the source object body straight into a destination upload."""
        async with self._source.store.open_read_stream(
            self._source.bucket, key
        ) as stream:
            await self._destination.store.upload_from_stream(
                self._destination.bucket, dst_key, stream, size
            )
