"""
Pytest configuration and fixtures.

Provides reusable schemas, rows, batches and engine settings for the test
suite.
"""

import warnings

import pytest

from weir.core import Batch, EngineSettings, FieldType, RetrySettings, Schema
from weir.core.schema import Field


def pytest_configure(config):
    """Keep third-party deprecation noise out of the test output."""
    warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture
def user_schema():
    """Schema with one column of each common type."""
    return Schema(
        [
            Field("id", FieldType.INTEGER, nullable=False),
            Field("name", FieldType.TEXT),
            Field("score", FieldType.FLOAT),
            Field("active", FieldType.BOOLEAN),
        ]
    )


@pytest.fixture
def user_rows():
    """Ten users; every third one inactive."""
    return [
        {
            "id": i,
            "name": f"user-{i}",
            "score": float(i) * 1.5,
            "active": i % 3 != 0,
        }
        for i in range(10)
    ]


@pytest.fixture
def make_batch(user_schema):
    """Factory building a validated batch of users."""

    def _make(rows, sequence=0, source_id="users", schema=None):
        return Batch.from_rows(schema or user_schema, rows, sequence, source_id)

    return _make


@pytest.fixture
def fast_settings():
    """Engine settings with small queues and no retry delay."""
    return EngineSettings(
        workers=4,
        source_queue_capacity=2,
        sink_queue_capacity=2,
        default_batch_size=100,
        retry=RetrySettings(max_attempts=3, initial_delay=0, max_delay=0),
    )
