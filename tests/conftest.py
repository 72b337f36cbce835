"""Shared fixtures for the docgate test suite."""

from docgate.testing.fixtures import (  # noqa: F401
    docgate_settings,
    manual_clock,
    mock_s3,
    storage_backend,
    test_client,
)
