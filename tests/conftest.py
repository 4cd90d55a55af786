"""Shared pytest configuration and fixtures for the apidemo test suite."""

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
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


# =============================================================================
# Platform Fakes
# =============================================================================

@pytest.fixture
def channel_source():
    """Fake sensor hardware reporting accelerometer, gyroscope and light."""
    from tests.infrastructure.mocks.platform_mocks import FakeChannelSource
    return FakeChannelSource()


@pytest.fixture
def location_source():
    """Fake location providers with no cached fixes."""
    from tests.infrastructure.mocks.platform_mocks import FakeLocationSource
    return FakeLocationSource()


@pytest.fixture
def permission_subsystem():
    """Fake permission store; every capability starts DENIED."""
    from tests.infrastructure.mocks.platform_mocks import FakePermissionSubsystem
    return FakePermissionSubsystem()


@pytest.fixture
def registry(channel_source):
    from apidemo.acquisition.channels import ChannelRegistry
    return ChannelRegistry(channel_source)
