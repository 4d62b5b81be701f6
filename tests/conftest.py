"""Common pytest configuration."""

import pytest

from tests.mock_utils import patch_mockfirestore


@pytest.fixture(autouse=True, scope="session")
def _patched_mockfirestore() -> None:
    """Make mockfirestore understand FieldFilter and transactional reads."""
    patch_mockfirestore()
