# src/location_sync/diff.py
"""
Classifies source objects against the destination listing.

Only source keys are visited: an object that exists solely at the
destination is never classified and therefore never touched.
"""

import logging
from typing import Callable, Dict, Optional

from location_sync.models import Classification, ComparisonResult, ObjectRecord

logger: logging.Logger = logging.getLogger(__name__)

KeyTranslator = Callable[[str], str]


class PrefixTranslator:
    """
    Maps source keys to destination keys by swapping a leading prefix.

    Keys that do not start with the source prefix are returned as-is.
    """

    def __init__(self, source_prefix: str, destination_prefix: str) -> None:
        self.source_prefix: str = source_prefix
        self.destination_prefix: str = destination_prefix

    def __call__(self, key: str) -> str:
        if not key.startswith(self.source_prefix):
            return key
        return self.destination_prefix + key[len(self.source_prefix) :]

    def inverse(self, key: str) -> str:
        """
        Maps a destination key back to its source key.

        Args:
            key (str): A destination object key.

        Returns:
            str: The source key that translates to `key`.
        """
        if not key.startswith(self.destination_prefix):
            return key
        return self.source_prefix + key[len(self.destination_prefix) :]

    def __repr__(self) -> str:
        return (
            f"PrefixTranslator({self.source_prefix!r} -> {self.destination_prefix!r})"
        )


def classify(
    source: ObjectRecord,
    destination: Optional[ObjectRecord],
) -> Classification:
    """
    Decides what to do with one source object.

    A size mismatch always wins over the timestamp check, and an equal-size
    source that is newer than the destination counts as conflicting.

    Args:
        source (ObjectRecord): The source object.
        destination (ObjectRecord, optional): Its destination counterpart.

    Returns:
        Classification: The verdict for this object.
    """
    if destination is None:
        return Classification.NEEDS_COPY
    if source.size != destination.size:
        return Classification.CONFLICTING
    if source.last_modified <= destination.last_modified:
        return Classification.UNCHANGED
    return Classification.CONFLICTING


def compare(
    source_map: Dict[str, ObjectRecord],
    dest_map: Dict[str, ObjectRecord],
    key_translate: KeyTranslator,
) -> ComparisonResult:
    """
    Compares a source listing against a destination listing.

    Args:
        source_map (Dict[str, ObjectRecord]): Source objects by key.
        dest_map (Dict[str, ObjectRecord]): Destination objects by key.
        key_translate (KeyTranslator): Maps a source key to its destination key.

    Returns:
        ComparisonResult: Every source object, sorted into exactly one class.
    """
    result: ComparisonResult = ComparisonResult()
    for key, record in source_map.items():
        verdict: Classification = classify(record, dest_map.get(key_translate(key)))
        if verdict is Classification.NEEDS_COPY:
            result.needs_copy.append(record)
        elif verdict is Classification.CONFLICTING:
            result.conflicting.append(record)
        else:
            result.unchanged.append(record)

    logger.debug(
        f"Compared {len(source_map)} source objects: "
        f"{len(result.needs_copy)} missing, {len(result.conflicting)} conflicting, "
        f"{len(result.unchanged)} unchanged"
    )
    return result
