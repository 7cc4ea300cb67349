# retrace/operations/interfaces.py
"""Interfaces shared by the operation strategies and the tracker."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field

from retrace.errors import ErrorKind
from retrace.models import Operation

BackupFileFunc = Callable[[str, Path], Awaitable[Optional[str]]]
BackupLookupFunc = Callable[[str], Awaitable[Optional[Path]]]


class OperationResult(BaseModel):
    """Outcome of an undo or redo request."""
    success: bool = Field(..., description="Whether the filesystem change was made")
    message: str = Field(..., description="Human-readable outcome, naming the affected path")
    backup_path: Optional[str] = Field(None, description="Backup taken before the change")
    affected_operations: Optional[List[Operation]] = Field(None, description="Operations touched by a tracker request")
    error_kind: Optional[ErrorKind] = Field(None, description="Failure category when success is False")
    warnings: List[str] = Field(default_factory=list, description="Soft problems that did not stop the change")
    partial: bool = Field(False, description="Only some of the operation's sub-steps were applied")


class OperationPreview(BaseModel):
    """Side-effect-free description of what an undo or redo would do."""
    operation: Operation
    changes: str
    cascading_operations: List[Operation] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


@dataclass
class OperationContext:
    """Capabilities handed to a strategy for a single undo/redo call."""
    backup_dir: Optional[Path]
    backup_file: BackupFileFunc
    get_backup_path: Optional[BackupLookupFunc] = None
    tracker: Any = None


class OperationStrategy(ABC):
    """Interface for the kind-specific undo/redo algorithms."""

    @abstractmethod
    async def preview_undo(self, operation: Operation) -> OperationPreview:
        """Describe what undoing the operation would do, without doing it."""
        pass

    @abstractmethod
    async def preview_redo(self, operation: Operation) -> OperationPreview:
        """Describe what redoing the operation would do, without doing it."""
        pass

    @abstractmethod
    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        """
        Revert the operation on disk.

        Args:
            operation: The operation to revert
            context: Backup facilities and a reference to the tracker

        Returns:
            A result; failures are reported, never raised
        """
        pass

    @abstractmethod
    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        """
        Re-apply the operation on disk.

        Args:
            operation: The operation to re-apply
            context: Backup facilities and a reference to the tracker

        Returns:
            A result; failures are reported, never raised
        """
        pass
