# retrace/api.py
"""
Public API for building retrace components.

Every call constructs a new, explicitly owned instance; callers keep and
pass them around rather than reaching for process-wide globals.
"""
from pathlib import Path
from typing import Optional, Union

from retrace.backup import BackupStore
from retrace.config import AppConfig
from retrace.operations.registry import StrategyRegistry
from retrace.tracker import OperationTracker, compute_workspace_id


def create_backup_store(config: AppConfig) -> BackupStore:
    """Create the backup store configured for this installation."""
    return BackupStore(config.storage.resolved_backup_dir)


def create_tracker(
    config: AppConfig,
    workspace: Union[str, Path],
    backup_store: Optional[BackupStore] = None,
    registry: Optional[StrategyRegistry] = None,
    load: bool = True,
) -> OperationTracker:
    """
    Create the operation tracker for a workspace.

    Args:
        config: Application configuration
        workspace: Workspace directory the log belongs to
        backup_store: Store to use; built from the configuration if omitted
        registry: Strategy registry; the default one if omitted
        load: Whether to load the workspace's persisted log

    Returns:
        A tracker bound to the workspace's operations file
    """
    tracker = OperationTracker(
        backup_store=backup_store or create_backup_store(config),
        registry=registry,
        storage_dir=config.storage.data_dir,
        workspace_id=compute_workspace_id(workspace),
        cascade_policy=config.tracker.cascade_policy,
        max_operations=config.tracker.max_operations,
    )
    if load:
        tracker.load()
    return tracker
