# src/location_sync/lister.py
"""Enumerates every object under a location's prefix."""

import logging
from typing import Dict, Optional

from location_sync.config import Location
from location_sync.exceptions import StoreAccessError
from location_sync.models import ObjectRecord
from location_sync.retry import AttemptResult, attempt
from location_sync.store import ListPage

logger: logging.Logger = logging.getLogger(__name__)


async def list_objects(
    location: Location,
    max_attempts: int = 1,
) -> Dict[str, ObjectRecord]:
    """
    Lists all objects under `location.prefix`, following continuation tokens.

    The mapping is only returned once pagination is exhausted. A page that
    still fails after `max_attempts` aborts the whole listing; no partial
    result ever reaches the caller.

    Args:
        location (Location): The location to enumerate.
        max_attempts (int): Attempts per page. The default of 1 propagates
            the first store error immediately.

    Returns:
        Dict[str, ObjectRecord]: Every object found, keyed by object key.

    Raises:
        StoreAccessError: If the store rejects a page request.
    """
    logger.info(f"Scanning bucket [{location.describe()}]")

    records: Dict[str, ObjectRecord] = {}
    token: Optional[str] = None
    page_count: int = 0
    while True:
        result: AttemptResult[ListPage] = await attempt(
            lambda: location.store.list_page(location.bucket, location.prefix, token),
            max_retries=max_attempts,
            retry_on=(StoreAccessError,),
            description=f"listing page {page_count + 1} of [{location.describe()}]",
        )
        page: ListPage = result.unwrap()
        page_count += 1
        for record in page.items:
            records[record.key] = record

        if page.next_token is None:
            break
        token = page.next_token

    logger.debug(
        f"Listed {len(records)} objects in {page_count} page(s) "
        f"from [{location.describe()}]"
    )
    return records
