# tests/conftest.py
"""
Common test fixtures for retrace.
"""
import os
import pytest
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

from retrace.backup import BackupStore
from retrace.models import Operation, OperationKind, OperationPayload
from retrace.operations.interfaces import OperationContext
from retrace.tracker import OperationTracker


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace(temp_dir):
    """A workspace directory agent actions happen in."""
    path = temp_dir / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def backup_store(temp_dir):
    return BackupStore(temp_dir / "backups")


@pytest.fixture
def context(backup_store):
    """Operation context backed by a real backup store."""
    return OperationContext(
        backup_dir=backup_store.backup_dir,
        backup_file=backup_store.backup_file,
        get_backup_path=backup_store.get_backup_path,
    )


@pytest.fixture
def mock_context():
    """Operation context whose backup function is a mock."""
    return OperationContext(backup_dir=None, backup_file=AsyncMock(return_value=None))


@pytest.fixture
def tracker(temp_dir, backup_store):
    """Tracker persisting under the temporary directory."""
    return OperationTracker(
        backup_store,
        storage_dir=temp_dir / "data",
        workspace_id="test-workspace",
    )


@pytest.fixture
def make_operation():
    """Factory for operations with keyword payload fields."""
    def _make(kind: OperationKind, **payload) -> Operation:
        return Operation(kind=kind, payload=OperationPayload(**payload))
    return _make


def snapshot_tree(root: Path) -> dict:
    """Map every path below root to its bytes (None for directories)."""
    snapshot = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            snapshot[os.path.relpath(os.path.join(dirpath, name), root)] = None
        for name in filenames:
            full = os.path.join(dirpath, name)
            with open(full, "rb") as f:
                snapshot[os.path.relpath(full, root)] = f.read()
    return snapshot


@pytest.fixture
def snapshot():
    return snapshot_tree
