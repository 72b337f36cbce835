"""Pytest fixtures for docgate testing.

Import the fixtures you need into your conftest.py:

    from docgate.testing.fixtures import docgate_settings, mock_s3, test_client
"""

import pytest

from docgate.core.settings import DocGateSettings
from docgate.storage.backends import S3StorageBackend
from docgate.testing.mocks import InMemoryS3
from docgate.testing.utils import ManualClock, create_test_settings


@pytest.fixture
def docgate_settings() -> DocGateSettings:
    """Provide test settings for docgate."""
    return create_test_settings()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def mock_s3() -> InMemoryS3:
    """Provide in-memory S3 mock.

    Returns:
        InMemoryS3 instance
    """
    s3 = InMemoryS3()
    yield s3
    s3.clear()


@pytest.fixture
def storage_backend(mock_s3: InMemoryS3, docgate_settings: DocGateSettings) -> S3StorageBackend:
    """Provide an S3 backend writing to the in-memory mock."""
    return S3StorageBackend(
        mock_s3,
        docgate_settings.aws_bucket_name,
        endpoint_url=docgate_settings.aws_url,
    )


@pytest.fixture
def test_client(
    docgate_settings: DocGateSettings,
    storage_backend: S3StorageBackend,
    manual_clock: ManualClock,
):
    """Provide a TestClient for an app backed by the in-memory S3 mock.

    Yields:
        FastAPI TestClient
    """
    from fastapi.testclient import TestClient

    from docgate.fastapi.app import create_app

    app = create_app(
        settings=docgate_settings,
        storage_backend=storage_backend,
        clock=manual_clock,
    )

    with TestClient(app) as client:
        yield client
