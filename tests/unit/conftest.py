"""Shared fixtures for unit tests."""

import pytest

from tests.unit.fakes import FakePool


@pytest.fixture
def fake_pool():
    return FakePool()
