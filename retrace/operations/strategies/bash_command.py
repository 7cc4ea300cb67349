# retrace/operations/strategies/bash_command.py
"""Shell commands are recorded but never reverted programmatically."""
from retrace.errors import UnsupportedReversal
from retrace.models import Operation
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult

MANUAL_INTERVENTION = "Manual intervention required"


class BashCommandStrategy(BaseOperationStrategy):

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        return self.basic_preview(
            operation,
            f"Cannot auto-undo command: {operation.payload.command}",
            [MANUAL_INTERVENTION],
        )

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        return self.basic_preview(
            operation,
            f"Cannot auto-redo command: {operation.payload.command}",
            [MANUAL_INTERVENTION],
        )

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        return await self.execute(operation, "undo", self._refuse)

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        return await self.execute(operation, "redo", self._refuse)

    @staticmethod
    async def _refuse() -> OperationResult:
        raise UnsupportedReversal(f"shell commands cannot be reversed automatically. {MANUAL_INTERVENTION}.")
