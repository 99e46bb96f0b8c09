# src/location_sync/models.py
"""
Data model shared by the lister, the diff engine and the synchronizer.

Records are rebuilt from a fresh listing on every call; nothing here is
cached or persisted between sync cycles.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class ObjectRecord:
    """
    Normalized metadata for one stored object.

    Attributes:
        key (str): The object key, unique within one listing.
        fingerprint (str): Opaque content signature supplied by the store
            (the S3 ETag). Not comparable across store implementations.
        size (int): Object size in bytes.
        last_modified (datetime): Timezone-aware last modification time.
    """

    key: str
    fingerprint: str
    size: int
    last_modified: datetime


class Classification(Enum):
    """Outcome of comparing one source object against the destination."""

    NEEDS_COPY = "needs_copy"
    CONFLICTING = "conflicting"
    UNCHANGED = "unchanged"


@dataclass
class ComparisonResult:
    """
    Classification of every source object produced by one diff pass.

    Attributes:
        needs_copy (List[ObjectRecord]): Source objects absent at the destination.
        conflicting (List[ObjectRecord]): Source objects whose destination
            counterpart differs in size or is older.
        unchanged (List[ObjectRecord]): Source objects already in sync.
    """

    needs_copy: List[ObjectRecord] = field(default_factory=list)
    conflicting: List[ObjectRecord] = field(default_factory=list)
    unchanged: List[ObjectRecord] = field(default_factory=list)

    @property
    def pending(self) -> List[ObjectRecord]:
        """
        Records that still have to be copied.

        Returns:
            List[ObjectRecord]: `needs_copy` followed by `conflicting`.
        """
        return self.needs_copy + self.conflicting

    @property
    def is_converged(self) -> bool:
        """True when nothing is left to copy."""
        return not self.needs_copy and not self.conflicting

    def classification_of(self, key: str) -> Optional[Classification]:
        """
        Looks up how a source key was classified.

        Args:
            key (str): The source object key.

        Returns:
            Optional[Classification]: The classification, or None if the key
                was not part of the source listing.
        """
        buckets = (
            (Classification.NEEDS_COPY, self.needs_copy),
            (Classification.CONFLICTING, self.conflicting),
            (Classification.UNCHANGED, self.unchanged),
        )
        for classification, records in buckets:
            if any(record.key == key for record in records):
                return classification
        return None


@dataclass(frozen=True)
class SyncReport:
    """
    Tally of one copy phase.

    Attributes:
        attempted (int): Number of keys handed to the copy executor.
        copied (int): Keys whose copy reported success.
        failed (List[str]): Keys that exhausted their retries.
    """

    attempted: int = 0
    copied: int = 0
    failed: List[str] = field(default_factory=list)
