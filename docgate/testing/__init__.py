"""Testing utilities for docgate applications.

This module provides an in-memory S3 mock, a manual clock and test
settings, plus pytest fixtures in :mod:`docgate.testing.fixtures`.

Usage in conftest.py:
    from docgate.testing.fixtures import docgate_settings, mock_s3, test_client
"""

from docgate.testing.mocks import InMemoryS3
from docgate.testing.utils import ManualClock, create_test_settings

__all__ = [
    "InMemoryS3",
    "ManualClock",
    "create_test_settings",
]
