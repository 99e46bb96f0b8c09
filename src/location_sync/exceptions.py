# src/location_sync/exceptions.py
"""Custom exceptions for the location-sync application."""

from typing import Optional


class LocationSyncError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(LocationSyncError):
    """Raised for missing or invalid configuration, before any I/O happens."""

    pass


class StoreAccessError(LocationSyncError):
    """
    Raised when an object store rejects a listing or transfer call.

    Attributes:
        operation (str): The store operation that failed.
        bucket (str): The bucket the operation targeted.
        key (str, optional): The object key, when the operation had one.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        bucket: str,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.operation: str = operation
        self.bucket: str = bucket
        self.key: Optional[str] = key


class CopyExhaustedError(LocationSyncError):
    """Recorded when every copy attempt for a single key has failed."""

    def __init__(self, key: str, attempts: int) -> None:
        super().__init__(f"Giving up on '{key}' after {attempts} attempt(s).")
        self.key: str = key
        self.attempts: int = attempts
