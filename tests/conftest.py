"""Shared pytest fixtures for stack refactor tests."""

import pytest

from stack_refactor.core.provider import InMemoryStackProvider
from tests.helpers import RecordingIoHost


@pytest.fixture
def provider() -> InMemoryStackProvider:
    """Provider with no deployed stacks; tests add what they need."""
    return InMemoryStackProvider()


@pytest.fixture
def io_host() -> RecordingIoHost:
    return RecordingIoHost()
