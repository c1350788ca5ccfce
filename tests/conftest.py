"""Shared pytest configuration and fixtures for the thadm host test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "recorder: mark test as launching thadm-recorder processes and signalling them by name"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-recorder",
        action="store_true",
        default=False,
        help="Run tests that launch a real thadm-recorder",
    )


def pytest_collection_modifyitems(config, items):
    """Skip recorder tests unless --run-recorder is specified."""
    if config.getoption("--run-recorder"):
        return

    skip_recorder = pytest.mark.skip(reason="Need --run-recorder option to run")
    for item in items:
        if "recorder" in item.keywords:
            item.add_marker(skip_recorder)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT
