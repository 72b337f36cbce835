"""Testing utilities for docgate."""

from datetime import datetime, timedelta, timezone

from docgate.core.settings import DocGateSettings


def create_test_settings(
    bucket_name: str = "test-bucket",
    secret_key: str = "test-secret-key-for-testing-only",
    **overrides
) -> DocGateSettings:
    """Create docgate settings for testing.

    Values are passed explicitly so nothing is picked up from the
    environment or a local ``.env`` file.

    Args:
        bucket_name: The S3 bucket name for tests
        secret_key: Capability signing secret for tests
        **overrides: Additional settings to override

    Returns:
        DocGateSettings instance configured for testing
    """
    values = {
        "aws_bucket_name": bucket_name,
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "aws_default_region": "us-east-1",
        "aws_url": "http://localhost:4566",
        "secret_key": secret_key,
        "session_cookie_secure": False,
        "debug": True,
    }
    values.update(overrides)
    return DocGateSettings(_env_file=None, **values)


class ManualClock:
    """A clock that only moves when told to.

    Wall time and monotonic time advance together.

    Example:
        >>> clock = ManualClock()
        >>> clock.advance(minutes=4)
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        delta = timedelta(seconds=seconds, minutes=minutes)
        self._now += delta
        self._monotonic += delta.total_seconds()
