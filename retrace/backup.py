# retrace/backup.py
"""
Backup store for the operation log.

Strategies snapshot a file here immediately before a destructive change.
Each snapshot is addressed by a backup id (an operation id, optionally with
a suffix), so concurrent strategy calls never write to the same target.
"""
import os
import re
import shutil
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from retrace.constants import DEFAULT_BACKUP_MAX_AGE_DAYS
from retrace.utils.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class BackupStore:
    """Stores pre-mutation file snapshots keyed by backup id."""

    def __init__(self, backup_dir: Union[str, Path]):
        self.backup_dir = Path(backup_dir)

    def _ensure_backup_dir(self):
        """Create the backup directory if it doesn't exist."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def sanitize_id(backup_id: str) -> str:
        """Reduce a backup id to a single safe path component."""
        safe = _UNSAFE_ID_CHARS.sub("_", backup_id).lstrip(".")
        if not safe:
            raise ValueError(f"Invalid backup id: {backup_id!r}")
        return safe

    def path_for(self, backup_id: str) -> Path:
        return self.backup_dir / self.sanitize_id(backup_id)

    async def backup_file(self, backup_id: str, source: Union[str, Path]) -> Optional[str]:
        """
        Copy the current content of a file into the store.

        Args:
            backup_id: Id the backup will be addressable by
            source: File to snapshot

        Returns:
            Path of the backup, or None if the source does not exist

        Raises:
            OSError: If the source exists but cannot be copied
        """
        source = Path(source)
        if not source.is_file():
            logger.debug(f"Nothing to back up for {backup_id}: {source} does not exist")
            return None

        self._ensure_backup_dir()
        target = self.path_for(backup_id)

        # Copy to a temporary name first so a reader never sees a partial backup
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=self.backup_dir)
        os.close(fd)
        try:
            shutil.copyfile(source, tmp_name)
            os.replace(tmp_name, target)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug(f"Created backup of {source} at {target}")
        return str(target)

    async def get_backup_path(self, backup_id: str) -> Optional[Path]:
        """Get the path of an existing backup, or None if there is none."""
        target = self.path_for(backup_id)
        return target if target.is_file() else None

    async def has_backup(self, backup_id: str) -> bool:
        return await self.get_backup_path(backup_id) is not None

    async def cleanup_backups(self, older_than_days: int = DEFAULT_BACKUP_MAX_AGE_DAYS) -> int:
        """
        Remove backups older than the given age.

        Args:
            older_than_days: Age threshold in days

        Returns:
            Number of backups removed
        """
        if not self.backup_dir.is_dir():
            return 0

        cutoff = datetime.now() - timedelta(days=older_than_days)
        removed = 0
        for entry in self.backup_dir.iterdir():
            if not entry.is_file():
                continue
            try:
                if datetime.fromtimestamp(entry.stat().st_mtime) < cutoff:
                    entry.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Failed to remove backup {entry}: {str(e)}")

        logger.info(f"Removed {removed} backup(s) older than {older_than_days} day(s)")
        return removed
