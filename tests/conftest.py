"""
Test configuration and fixtures
"""
import pytest
import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from db.licensing.descriptor import LicenseDescriptorReader
from db.licensing.license_manager import LicenseManager
from db.licensing.lock_marker import LockMarkerStore
from db.licensing.resolver import LicenseResolver
from tests.utils.seed import FrozenClock, TEST_SECRET


@pytest.fixture
def clock():
    """Clock frozen at 2024-03-15 12:00 UTC."""
    return FrozenClock()


@pytest.fixture
def license_dirs(tmp_path):
    """
    Temp stand-ins for the container and local license directories.

    The container directory is not created, so the local fallback is used
    unless a test creates it.
    """
    return {
        "container_root": tmp_path / "container" / "License",
        "local_root": tmp_path / "cwd" / "License",
        "license_paths": [
            tmp_path / "container" / "License" / "license.json",
            tmp_path / "project" / "License" / "license.json",
        ],
    }


@pytest.fixture
def lock_store(license_dirs, clock):
    return LockMarkerStore(
        container_root=license_dirs["container_root"],
        local_root=license_dirs["local_root"],
        clock=clock
    )


@pytest.fixture
def reader(license_dirs, clock):
    return LicenseDescriptorReader(TEST_SECRET, candidate_paths=license_dirs["license_paths"], clock=clock)


@pytest.fixture
def resolver(lock_store, reader, clock):
    return LicenseResolver(lock_store, reader, clock=clock)


@pytest.fixture
def project_license_path(license_dirs):
    """Local fallback license.json location."""
    return license_dirs["license_paths"][1]


@pytest.fixture
def manager(license_dirs, clock):
    return LicenseManager(
        TEST_SECRET,
        container_root=license_dirs["container_root"],
        local_root=license_dirs["local_root"],
        license_paths=license_dirs["license_paths"],
        clock=clock
    )


@pytest.fixture
def app(manager):
    """Create application for testing against a fresh in-memory database."""
    app = create_app(database_url="sqlite://", license_manager=manager)
    app.config.update({
        "TESTING": True,
    })

    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()
