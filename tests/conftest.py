"""Pytest configuration for buildshare tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from buildshare.observability.logging import _reset_for_tests
from buildshare.app.db.supabase_client import _reset_shared_async_client_for_tests


@pytest.fixture(autouse=True)
def _reset_module_state():
    yield
    _reset_for_tests()
    _reset_shared_async_client_for_tests()
