"""Pytest configuration for autoprofiler."""
import os
from datetime import datetime, timedelta, timezone

import pytest

from autoprofiler.base.config import set_config
from autoprofiler.contracts.samples import SampleActivity


def pytest_configure():
    # Debug logging in tests; never pick up a developer's settings file.
    os.environ.setdefault("AUTOPROFILER_DEBUG", "true")
    os.environ.setdefault("AUTOPROFILER_STANDALONE", "true")


@pytest.fixture(autouse=True)
def reset_config():
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def make_sample():
    """Factory for valid SampleActivity objects with correlated activity paths."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _make(
        operation_id: str = "op-1",
        duration_ms: float = 10.0,
        operation_name: str = "GET /orders",
        path: str = None,
        request_id: str = None,
    ) -> SampleActivity:
        path = path or f"/1/{operation_id}/"
        return SampleActivity(
            operation_name=operation_name,
            operation_id=operation_id,
            request_id=request_id or f"req-{operation_id}",
            start_activity_id_path=path,
            stop_activity_id_path=path,
            start_time_utc=base,
            stop_time_utc=base + timedelta(milliseconds=duration_ms),
        )

    return _make
