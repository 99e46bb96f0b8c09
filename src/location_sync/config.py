# src/location_sync/config.py
"""
Configuration for the location-sync pipeline.

This module centralizes all configuration, loading sensitive values from
environment variables and providing typed dataclasses for use throughout
the application. `Location` and `SyncConfig` describe one synchronizer run;
`Config` describes how the CLI builds them from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from location_sync.exceptions import ConfigError

if TYPE_CHECKING:
    from location_sync.store import ObjectStore


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigError(f"Environment variable '{name}' must be set.")
    return value


def _get_optional_env_var(name: str, default: str = "") -> str:
    """Retrieves an environment variable that may legitimately be empty."""
    return os.environ.get(name, default)


@dataclass(frozen=True)
class S3Config:
    """
    Represents the configuration for an S3-compatible location.

    Attributes:
        endpoint_url (str): The S3 endpoint URL. Empty means the AWS default.
        access_key_id (str): The access key ID.
        secret_access_key (str): The secret access key.
        bucket (str): The bucket name.
        prefix (str): The key prefix to synchronize.
        region (str): The AWS region.
    """

    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    bucket: str
    prefix: str
    region: str

    def as_boto_dict(self) -> Dict[str, Optional[str]]:
        """
        Returns the configuration as a dictionary suitable for aiobotocore clients.

        Returns:
            Dict[str, Optional[str]]: A dictionary of client parameters.
        """
        return {
            "endpoint_url": self.endpoint_url or None,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "region_name": self.region,
        }


def _s3_config_from_env(side: str) -> S3Config:
    """
    Builds an `S3Config` from the `LOCATION_SYNC_<SIDE>_*` variables.

    Args:
        side (str): Either "SOURCE" or "DESTINATION".

    Returns:
        S3Config: The loaded configuration.
    """
    env_prefix: str = f"LOCATION_SYNC_{side}"
    return S3Config(
        endpoint_url=_get_optional_env_var(f"{env_prefix}_ENDPOINT_URL"),
        access_key_id=_get_env_var(f"{env_prefix}_ACCESS_KEY_ID"),
        secret_access_key=_get_env_var(f"{env_prefix}_SECRET_ACCESS_KEY"),
        bucket=_get_env_var(f"{env_prefix}_BUCKET"),
        prefix=_get_optional_env_var(f"{env_prefix}_PREFIX"),
        region=_get_env_var(f"{env_prefix}_REGION", "us-east-1"),
    )


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        max_concurrency (int): Maximum number of copies in flight.
        max_retries (int): Attempts per object copy before giving up.
        express (bool): Use server-side copies instead of streaming.
        retry_delay_s (float): Fixed delay between copy attempts.
        list_max_attempts (int): Attempts per listing page. 1 means a
            listing error aborts the run immediately.
        multipart_threshold_mb (int): Streamed uploads above this size use
            a multipart upload.
    """

    max_concurrency: int = 15
    max_retries: int = 5
    express: bool = False
    retry_delay_s: float = 0.0
    list_max_attempts: int = 1
    multipart_threshold_mb: int = 8


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for the CLI.

    Attributes:
        source (S3Config): Configuration for the source location.
        destination (S3Config): Configuration for the destination location.
        app (AppConfig): General application settings.
    """

    source: S3Config = field(default_factory=lambda: _s3_config_from_env("SOURCE"))
    destination: S3Config = field(
        default_factory=lambda: _s3_config_from_env("DESTINATION")
    )
    app: AppConfig = field(default_factory=AppConfig)


@dataclass
class Location:
    """
    A (store, bucket, prefix) triple identifying a scope of objects.

    Treated as immutable for the duration of a run; the prefix may only
    change through `update_prefix` between runs.

    Attributes:
        store (ObjectStore): The handle used to reach the bucket.
        bucket (str): The bucket or container name.
        prefix (str): The key prefix. Empty means the whole bucket.
    """

    store: "ObjectStore"
    bucket: str
    prefix: str = ""

    def update_prefix(self, prefix: str) -> None:
        """
        Points this location at a new prefix.

        Args:
            prefix (str): The new key prefix.
        """
        self.prefix = prefix

    def describe(self) -> str:
        """Renders the location as `bucket/prefix` for log messages."""
        return f"{self.bucket}/{self.prefix}"


@dataclass
class SyncConfig:
    """
    Everything one synchronizer needs, validated on construction.

    Attributes:
        source (Location): Where objects are copied from.
        destination (Location): Where objects are copied to.
        max_concurrency (int): Maximum number of copies in flight.
        max_retries (int): Attempts per object copy.
        express (bool): Use server-side copies instead of streaming.
        retry_delay_s (float): Fixed delay between copy attempts.
        list_max_attempts (int): Attempts per listing page.
    """

    source: Location
    destination: Location
    max_concurrency: int = 15
    max_retries: int = 5
    express: bool = False
    retry_delay_s: float = 0.0
    list_max_attempts: int = 1

    def __post_init__(self) -> None:
        for name in ("source", "destination"):
            location: Optional[Location] = getattr(self, name)
            if location is None:
                raise ConfigError(f"The {name} location must be set.")
            if location.store is None:
                raise ConfigError(f"The {name} location has no object store.")
            if not location.bucket:
                raise ConfigError(f"The {name} location has no bucket.")
        if self.max_concurrency < 1:
            raise ConfigError(
                f"max_concurrency must be at least 1, got {self.max_concurrency}."
            )
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}.")
        if self.list_max_attempts < 1:
            raise ConfigError(
                f"list_max_attempts must be at least 1, got {self.list_max_attempts}."
            )
        if self.retry_delay_s < 0:
            raise ConfigError(f"retry_delay_s cannot be negative: {self.retry_delay_s}.")

    @classmethod
    def from_app_config(
        cls,
        source: Location,
        destination: Location,
        app: AppConfig,
    ) -> "SyncConfig":
        """
        Builds a `SyncConfig` from the application settings.

        Args:
            source (Location): The source location.
            destination (Location): The destination location.
            app (AppConfig): The operational parameters.

        Returns:
            SyncConfig: The validated run configuration.
        """
        return cls(
            source=source,
            destination=destination,
            max_concurrency=app.max_concurrency,
            max_retries=app.max_retries,
            express=app.express,
            retry_delay_s=app.retry_delay_s,
            list_max_attempts=app.list_max_attempts,
        )
