# retrace/operations/strategies/directory_delete.py
"""Undo/redo for directory deletion."""
import os
from typing import List

from retrace.errors import TargetNotFound
from retrace.models import Operation
from retrace.operations import fs
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult

NO_STRUCTURE_WARNING = "Directory structure not available - cannot fully restore"


class DirectoryDeleteStrategy(BaseOperationStrategy):
    """
    Undo recreates the directory and rewrites each captured file in the
    order it was captured; redo deletes the directory tree again.
    """

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.dir_path
        if not path:
            return self.basic_preview(operation, "No directory path specified", ["No directory path specified"])
        files = operation.payload.files
        warnings = [] if files is not None else [NO_STRUCTURE_WARNING]
        changes = f"Will restore directory: {path}"
        if files:
            changes += f" ({len(files)} file(s))"
        return self.basic_preview(operation, changes, warnings)

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.dir_path
        if not path:
            return self.basic_preview(operation, "No directory path specified", ["No directory path specified"])
        return self.basic_preview(operation, f"Will delete directory: {path}")

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            dir_path = self.validate_directory_path(operation)
            fs.make_dir(dir_path)

            files = operation.payload.files
            if files is None:
                return self.success(
                    f"Directory restored without contents: {dir_path}",
                    warnings=[NO_STRUCTURE_WARNING],
                )

            warnings: List[str] = []
            restored = 0
            for entry in files:
                if entry.content is None:
                    warnings.append(f"No content captured for {entry.path}; skipped")
                    continue
                target = entry.path if os.path.isabs(entry.path) else os.path.join(dir_path, entry.path)
                fs.write_text(target, entry.content)
                restored += 1

            return self.success(
                f"Directory restored: {dir_path} ({restored} file(s))",
                warnings=warnings,
            )

        return await self.execute(operation, "undo", mutation)

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            dir_path = self.validate_directory_path(operation)
            if not fs.is_dir(dir_path):
                raise TargetNotFound(f"directory not found: {dir_path}")
            fs.remove_tree(dir_path)
            return self.success(f"Directory deleted: {dir_path}")

        return await self.execute(operation, "redo", mutation)
