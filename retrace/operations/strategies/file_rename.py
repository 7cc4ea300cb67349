# retrace/operations/strategies/file_rename.py
"""Undo/redo for renames and moves. Content is untouched, so no backup is taken."""
from retrace.errors import IOFailure, TargetNotFound
from retrace.models import Operation
from retrace.operations import fs
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult


class FileRenameStrategy(BaseOperationStrategy):

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        p = operation.payload
        if not p.old_path or not p.new_path:
            return self.basic_preview(operation, "Missing path information for rename operation",
                                      ["Missing path information for rename operation"])
        return self.basic_preview(operation, f"Will rename back: {p.new_path} -> {p.old_path}")

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        p = operation.payload
        if not p.old_path or not p.new_path:
            return self.basic_preview(operation, "Missing path information for rename operation",
                                      ["Missing path information for rename operation"])
        return self.basic_preview(operation, f"Will rename: {p.old_path} -> {p.new_path}")

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            old_path, new_path = self.validate_rename_paths(operation)
            self._move(new_path, old_path)
            return self.success(f"File renamed back to: {old_path}")

        return await self.execute(operation, "undo", mutation)

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            old_path, new_path = self.validate_rename_paths(operation)
            self._move(old_path, new_path)
            return self.success(f"File renamed to: {new_path}")

        return await self.execute(operation, "redo", mutation)

    @staticmethod
    def _move(source: str, destination: str) -> None:
        if not fs.exists(source):
            raise TargetNotFound(f"source path does not exist: {source}")
        if fs.exists(destination):
            raise IOFailure(f"destination already exists: {destination}")
        fs.rename(source, destination)
