# retrace/operations/strategies/file_create.py
"""Undo/redo for file creation."""
from pathlib import Path

from retrace.constants import REDO_BACKUP_SUFFIX
from retrace.errors import ContentUnavailable, TargetNotFound
from retrace.models import Operation
from retrace.operations import fs
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult

NO_CONTENT_WARNING = "File content not available - cannot recreate file"


class FileCreateStrategy(BaseOperationStrategy):
    """Undo deletes the created file; redo writes the recorded content again."""

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.file_path
        if not path:
            return self.basic_preview(operation, "No file path specified", ["No file path specified"])
        warnings = [] if operation.payload.content is not None else [
            "File content not available - a later redo will not be able to recreate the file"
        ]
        return self.basic_preview(operation, f"Will delete file: {path}", warnings)

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.file_path
        if not path:
            return self.basic_preview(operation, "No file path specified", ["No file path specified"])
        warnings = [] if operation.payload.content is not None else [NO_CONTENT_WARNING]
        return self.basic_preview(operation, f"Will recreate file: {path}", warnings)

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            path = self.validate_file_path(operation)
            if not fs.is_file(path):
                raise TargetNotFound(f"file not found: {path}")

            backup_path = await context.backup_file(operation.id, Path(path))
            fs.remove_file(path)
            return self.success(f"File deleted: {path}", backup_path)

        return await self.execute(operation, "undo", mutation)

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            path = self.validate_file_path(operation)
            content = operation.payload.content
            if content is None:
                raise ContentUnavailable("Cannot recreate file without content")

            # Keep whatever now occupies the path before overwriting it
            backup_path = None
            if fs.exists(path):
                backup_path = await context.backup_file(operation.id + REDO_BACKUP_SUFFIX, Path(path))

            fs.write_text(path, content)
            return self.success(f"File recreated: {path}", backup_path)

        return await self.execute(operation, "redo", mutation)
