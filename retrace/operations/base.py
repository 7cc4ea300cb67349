# retrace/operations/base.py
"""
Base operation strategy.

Provides the validation, error conversion and preview helpers shared by
every kind-specific strategy.
"""
from typing import Awaitable, Callable, List, Optional, Tuple

from retrace.errors import ErrorKind, RetraceError, ValidationError
from retrace.models import Operation
from retrace.operations.interfaces import (
    OperationStrategy, OperationPreview, OperationResult
)
from retrace.utils.logging import get_logger

logger = get_logger(__name__)


class BaseOperationStrategy(OperationStrategy):
    """Common functionality for all operation strategies."""

    def __init__(self):
        self._logger = logger

    # --- Validation: always runs before any filesystem access ---

    def validate_file_path(self, operation: Operation) -> str:
        if not operation.payload.file_path:
            raise ValidationError("No file path specified")
        return operation.payload.file_path

    def validate_directory_path(self, operation: Operation) -> str:
        if not operation.payload.dir_path:
            raise ValidationError("No directory path specified")
        return operation.payload.dir_path

    def validate_rename_paths(self, operation: Operation) -> Tuple[str, str]:
        if not operation.payload.old_path or not operation.payload.new_path:
            raise ValidationError("Missing path information for rename operation")
        return operation.payload.old_path, operation.payload.new_path

    # --- Execution ---

    async def execute(
        self,
        operation: Operation,
        action: str,
        mutation: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        """
        Run a mutation and convert every failure into a result.

        Args:
            operation: The operation being undone or redone
            action: "undo" or "redo", used in failure messages
            mutation: Coroutine factory performing validation and the change

        Returns:
            The mutation's result, or a failed result naming the cause
        """
        try:
            result = await mutation()
            self._logger.info(f"{action} {operation.id}: {result.message}")
            return result
        except RetraceError as e:
            self._logger.warning(f"Cannot {action} {operation.id} ({e.kind.value}): {e}")
            return self.failure(f"Failed to {action} {operation.describe()}: {e}", e.kind)
        except FileNotFoundError as e:
            self._logger.warning(f"Cannot {action} {operation.id}: {e}")
            return self.failure(f"Failed to {action} {operation.describe()}: {e}", ErrorKind.TARGET_NOT_FOUND)
        except Exception as e:
            self._logger.exception(f"Error during {action} of {operation.id}: {str(e)}")
            return self.failure(f"Failed to {action} {operation.describe()}: {e}", ErrorKind.IO_FAILURE)

    @staticmethod
    def success(
        message: str,
        backup_path: Optional[str] = None,
        warnings: Optional[List[str]] = None,
        partial: bool = False,
    ) -> OperationResult:
        return OperationResult(
            success=True,
            message=message,
            backup_path=backup_path,
            warnings=warnings or [],
            partial=partial,
        )

    @staticmethod
    def failure(message: str, error_kind: ErrorKind) -> OperationResult:
        return OperationResult(success=False, message=message, error_kind=error_kind)

    # --- Previews ---

    @staticmethod
    def basic_preview(
        operation: Operation,
        changes: str,
        warnings: Optional[List[str]] = None,
    ) -> OperationPreview:
        """Create a preview with no cascading operations."""
        return OperationPreview(
            operation=operation,
            changes=changes,
            cascading_operations=[],
            warnings=list(warnings or []),
        )

    # --- Content replacement ---

    @staticmethod
    def apply_edit(
        content: str,
        source: str,
        target: str,
        replace_all: bool = False,
    ) -> Tuple[str, bool]:
        """
        Replace exact occurrences of source with target.

        Returns the new content and whether anything was replaced. An empty
        or absent source leaves the content unchanged.
        """
        if not source or source not in content:
            return content, False
        if replace_all:
            return content.replace(source, target), True
        return content.replace(source, target, 1), True
