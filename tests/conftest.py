# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across test modules."""

from collections.abc import Iterator

import pytest

from paraclient.config import reset_dotenv_state
from paraclient.logging import SecretFilter


@pytest.fixture(autouse=True)
def _clean_global_state() -> Iterator[None]:
    """Reset the redaction registry and dotenv state around each test."""
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()
