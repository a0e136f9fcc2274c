"""
Main pytest configuration for async transients tests.

Fixtures for a controllable clock, a recording content query and an
in-memory collaborator set.
"""

import pytest

from async_transients.services.cache.transient import Collaborators

from tests.fixtures.content_test_data import FakeClock, RecordingContentQuery


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def content_query():
    return RecordingContentQuery()


@pytest.fixture
def collaborators(content_query, clock):
    return Collaborators.in_memory(content_query, clock=clock)


@pytest.fixture
def home_feed_options():
    return {
        "name": "home-feed",
        "kind": "query",
        "ttl": 3600,
        "compute_spec": {"type": "post", "limit": 10},
    }
