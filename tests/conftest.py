# tests/conftest.py
"""
Pytest configuration and fixtures for the location-sync test suite.

This module sets up the testing environment, including:
- In-memory object stores and locations for the unit tests.
- Spinning up Docker containers for source and destination S3 services (MinIO)
  for the end-to-end tests, which are skipped when Docker is unavailable.
- Creating and cleaning up isolated S3 buckets for each end-to-end test.
"""

import shutil
import uuid
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Dict, List

import pytest
import pytest_asyncio
import requests
from aiobotocore.session import AioSession, get_session
from botocore.exceptions import ClientError
from requests.exceptions import ConnectionError

from location_sync.config import Location, SyncConfig
from tests.memory_store import Clock, InMemoryObjectStore

# --- Constants ---
S3_ACCESS_KEY: str = "minio-key"
S3_SECRET_KEY: str = "minio-secret"
S3_REGION: str = "us-east-1"

SOURCE_BUCKET: str = "source-bucket"
DEST_BUCKET: str = "dest-bucket"


# --- In-memory Fixtures ---
@pytest.fixture(scope="function")
def clock() -> Clock:
    """
    Provide a fake clock shared by every store in a test.

    Returns:
        Clock: A clock that advances one second per reading.
    """
    return Clock()


@pytest.fixture(scope="function")
def memory_store(clock: Clock) -> InMemoryObjectStore:
    """
    Provide an in-memory store holding empty source and destination buckets.

    Args:
        clock (Clock): The shared fake clock.

    Returns:
        InMemoryObjectStore: The store, reachable from both locations.
    """
    store: InMemoryObjectStore = InMemoryObjectStore(clock)
    store.create_bucket(SOURCE_BUCKET)
    store.create_bucket(DEST_BUCKET)
    return store


@pytest.fixture(scope="function")
def make_sync_config(
    memory_store: InMemoryObjectStore,
) -> Callable[..., SyncConfig]:
    """
    Provide a factory for `SyncConfig` objects over the in-memory store.

    The factory accepts `source_prefix`, `dest_prefix`, `source_store`,
    `dest_store`, and any `SyncConfig` field as keyword arguments.

    Args:
        memory_store (InMemoryObjectStore): The default store for both sides.

    Returns:
        Callable[..., SyncConfig]: The factory.
    """

    def _factory(
        source_prefix: str = "",
        dest_prefix: str = "",
        source_store: Any = None,
        dest_store: Any = None,
        **kwargs: Any,
    ) -> SyncConfig:
        return SyncConfig(
            source=Location(source_store or memory_store, SOURCE_BUCKET, source_prefix),
            destination=Location(dest_store or memory_store, DEST_BUCKET, dest_prefix),
            **kwargs,
        )

    return _factory


# --- Docker Fixtures ---
@pytest.fixture(scope="session")
def docker_compose_file(pytestconfig: pytest.Config) -> str:
    """
    Locate the docker-compose.yml file for the test suite.

    Args:
        pytestconfig (pytest.Config): The pytest configuration objects.

    Returns:
        str: The absolute path to the docker-compose.yml file.
    """
    return str(Path(pytestconfig.rootpath) / "tests" / "docker-compose.yml")


@pytest.fixture(scope="session")
def docker_compose_project_name() -> str:
    """
    Define a unique, static project name for the Docker stack.

    Returns:
        str: A unique name for the docker-compose project.
    """
    return "location-sync-tests"


def _is_s3_responsive(url: str) -> bool:
    """
    Check if the MinIO health endpoint is responsive.

    Args:
        url (str): The base URL of the MinIO API.

    Returns:
        bool: True if the service is responsive, False otherwise.
    """
    try:
        # The health check endpoint for MinIO is /minio/health/live
        response: requests.Response = requests.get(f"{url}/minio/health/live")
        return response.status_code == 200
    except ConnectionError:
        return False


def _start_minio(request: pytest.FixtureRequest, docker_ip: str, service: str) -> Dict[str, Any]:
    """
    Ensure a MinIO service is running and return its connection details.

    Skips the requesting test when no Docker binary is available.

    Args:
        request (pytest.FixtureRequest): Used to pull in `docker_services` lazily.
        docker_ip (str): The IP address of the Docker host.
        service (str): The compose service name.

    Returns:
        Dict[str, Any]: Keyword arguments for `create_client`.
    """
    if shutil.which("docker") is None:
        pytest.skip("Docker is not available.")
    docker_services: Any = request.getfixturevalue("docker_services")
    port: int = docker_services.port_for(service, 9000)
    api_url: str = f"http://{docker_ip}:{port}"
    docker_services.wait_until_responsive(
        timeout=30.0, pause=0.1, check=lambda: _is_s3_responsive(api_url)
    )
    return {
        "endpoint_url": api_url,
        "aws_access_key_id": S3_ACCESS_KEY,
        "aws_secret_access_key": S3_SECRET_KEY,
        "region_name": S3_REGION,
    }


@pytest.fixture(scope="session")
def source_s3_service(request: pytest.FixtureRequest, docker_ip: str) -> Dict[str, Any]:
    """Connection details for the source MinIO service."""
    return _start_minio(request, docker_ip, "minio-source")


@pytest.fixture(scope="session")
def dest_s3_service(request: pytest.FixtureRequest, docker_ip: str) -> Dict[str, Any]:
    """Connection details for the destination MinIO service."""
    return _start_minio(request, docker_ip, "minio-destination")


async def _empty_and_delete_bucket(session: AioSession, service: Dict[str, Any], bucket: str) -> None:
    """Delete every object in `bucket`, then the bucket itself."""
    async with session.create_client("s3", **service) as client:
        try:
            paginator = client.get_paginator("list_objects_v2")
            keys: List[str] = [
                obj["Key"]
                async for page in paginator.paginate(Bucket=bucket)
                for obj in page.get("Contents", [])
            ]
            for key in keys:
                await client.delete_object(Bucket=bucket, Key=key)
            await client.delete_bucket(Bucket=bucket)
        except ClientError as e:
            if e.response["Error"]["Code"] != "NoSuchBucket":
                raise


@pytest_asyncio.fixture(scope="function")
async def s3_buckets(
    source_s3_service: Dict[str, Any],
    dest_s3_service: Dict[str, Any],
) -> AsyncGenerator[Dict[str, str], None]:
    """
    Create unique, isolated S3 buckets for a single test function.

    Args:
        source_s3_service (Dict[str, Any]): Connection details for the source S3.
        dest_s3_service (Dict[str, Any]): Connection details for the destination S3.

    Yield:
        AsyncGenerator[Dict[str, str], None]: A dictionary with the names of
            the created source and destination buckets.
    """
    session: AioSession = get_session()
    bucket_name_suffix: str = f"test-bucket-{uuid.uuid4()}"
    source_bucket: str = f"source-{bucket_name_suffix}"[:63]
    dest_bucket: str = f"dest-{bucket_name_suffix}"[:63]

    async with (
        session.create_client("s3", **source_s3_service) as s3_source,
        session.create_client("s3", **dest_s3_service) as s3_dest,
    ):
        await s3_source.create_bucket(Bucket=source_bucket)
        await s3_dest.create_bucket(Bucket=dest_bucket)

    yield {"source": source_bucket, "destination": dest_bucket}

    await _empty_and_delete_bucket(session, source_s3_service, source_bucket)
    await _empty_and_delete_bucket(session, dest_s3_service, dest_bucket)
