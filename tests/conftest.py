"""Test fixtures."""

import itertools
from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(name="_uid", autouse=True)
def mock_uid() -> Generator[None, None, None]:
    """Patch out uuid creation with a predictable sequence."""
    counter = itertools.count(1)

    def func() -> str:
        return f"mock-uid-{next(counter):04d}"

    with patch("goalrecur.types.goal.uid_factory", new=func), patch(
        "goalrecur.types.occurrence.uid_factory", new=func
    ):
        yield
