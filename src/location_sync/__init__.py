# src/location_sync/__init__.py
"""
location-sync: Converge an object-store prefix to match another one.

This package copies every object that is missing or stale at a destination
prefix from a source prefix, possibly in another account or provider, under
bounded concurrency and with per-object retries, then re-lists both sides to
verify convergence.

The primary entry point for programmatic use is the `LocationSynchronizer` class.
"""

from typing import List

from location_sync.config import Location, SyncConfig
from location_sync.synchronizer import LocationSynchronizer

__all__: List[str] = ["Location", "LocationSynchronizer", "SyncConfig"]
