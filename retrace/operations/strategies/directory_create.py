# retrace/operations/strategies/directory_create.py
"""Undo/redo for directory creation."""
from retrace.errors import TargetNotFound
from retrace.models import Operation
from retrace.operations import fs
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult


class DirectoryCreateStrategy(BaseOperationStrategy):

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.dir_path
        if not path:
            return self.basic_preview(operation, "No directory path specified", ["No directory path specified"])
        warnings = []
        if fs.is_dir(path) and not fs.is_empty_dir(path):
            warnings.append(f"Directory is not empty; its contents will be deleted: {path}")
        return self.basic_preview(operation, f"Will delete directory: {path}", warnings)

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        path = operation.payload.dir_path
        if not path:
            return self.basic_preview(operation, "No directory path specified", ["No directory path specified"])
        return self.basic_preview(operation, f"Will create directory: {path}")

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            path = self.validate_directory_path(operation)
            if not fs.is_dir(path):
                raise TargetNotFound(f"directory not found: {path}")
            fs.remove_tree(path)
            return self.success(f"Directory deleted: {path}")

        return await self.execute(operation, "undo", mutation)

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        async def mutation() -> OperationResult:
            path = self.validate_directory_path(operation)
            fs.make_dir(path)
            return self.success(f"Directory created: {path}")

        return await self.execute(operation, "redo", mutation)
