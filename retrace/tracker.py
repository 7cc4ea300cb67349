# retrace/tracker.py
"""
Operation tracker.

Owns the chronological operation log and the dependency graph between
operations, dispatches undo/redo requests to the strategy registry, and
is the only component that changes an operation's status.
"""
import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from retrace.constants import DEFAULT_MAX_OPERATIONS, NO_SESSION_KEY, OPERATIONS_FILE_TEMPLATE
from retrace.errors import ErrorKind, NON_RECOVERABLE_ERRORS, UnknownOperationKind
from retrace.models import (
    CascadePolicy, Operation, OperationKind, OperationPayload, OperationStatus
)
from retrace.operations import fs
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult
from retrace.operations.registry import StrategyRegistry
from retrace.backup import BackupStore
from retrace.utils.logging import get_logger

logger = get_logger(__name__)

UNDO = "undo"
REDO = "redo"


def compute_workspace_id(workspace: Union[str, Path]) -> str:
    """Derive a short, filesystem-safe id from a workspace path."""
    resolved = str(Path(workspace).expanduser().resolve())
    return hashlib.sha1(resolved.encode("utf-8")).hexdigest()[:12]


def _is_within(path: str, directory: str) -> bool:
    return path.startswith(directory.rstrip(os.sep) + os.sep)


class OperationTracker:
    """Chronological log of reversible operations."""

    def __init__(
        self,
        backup_store: BackupStore,
        registry: Optional[StrategyRegistry] = None,
        storage_dir: Optional[Union[str, Path]] = None,
        workspace_id: Optional[str] = None,
        cascade_policy: Union[CascadePolicy, str] = CascadePolicy.BLOCK,
        max_operations: int = DEFAULT_MAX_OPERATIONS,
        autosave: bool = True,
    ):
        """
        Initialize the tracker.

        Args:
            backup_store: Store the strategies snapshot files into
            registry: Strategy registry; a default one is built if omitted
            storage_dir: Directory holding the persisted log
            workspace_id: Id of the workspace the log belongs to
            cascade_policy: Default handling of dependent operations
            max_operations: Oldest operations beyond this count are dropped
            autosave: Persist after every change when storage is configured
        """
        self._backup_store = backup_store
        self._registry = registry or StrategyRegistry()
        self._storage_dir = Path(storage_dir) if storage_dir else None
        self._workspace_id = workspace_id
        self.cascade_policy = CascadePolicy(cascade_policy)
        self.max_operations = max_operations
        self.autosave = autosave

        self._operations: Dict[str, Operation] = {}
        self._by_message: Dict[str, List[str]] = {}
        self._by_session: Dict[str, List[str]] = {}
        self._current_session_id: Optional[str] = None
        self._in_flight: Set[str] = set()

    # --- Properties ---

    @property
    def workspace_id(self) -> Optional[str]:
        return self._workspace_id

    @property
    def current_session_id(self) -> Optional[str]:
        return self._current_session_id

    @property
    def storage_file(self) -> Optional[Path]:
        """Path of the persisted log, or None when persistence is disabled."""
        if self._storage_dir is None or self._workspace_id is None:
            return None
        return self._storage_dir / OPERATIONS_FILE_TEMPLATE.format(workspace_id=self._workspace_id)

    @property
    def operations(self) -> List[Operation]:
        """All operations in log order."""
        return list(self._operations.values())

    # --- Recording ---

    def set_current_session(self, session_id: Optional[str]) -> None:
        self._current_session_id = session_id
        logger.debug(f"Current session set to {session_id}")

    def record(
        self,
        kind: Union[Operation, OperationKind, str],
        payload: Optional[Union[OperationPayload, Dict[str, Any]]] = None,
        *,
        status: OperationStatus = OperationStatus.ACTIVE,
        error: Optional[str] = None,
        message_id: Optional[str] = None,
        operation_id: Optional[str] = None,
    ) -> Operation:
        """
        Append an operation to the log.

        Args:
            kind: Operation kind, or a ready Operation to append as is
            payload: Kind-specific fields (model or camelCase/snake_case dict)
            status: Initial status, reflecting whether the action itself succeeded
            error: Failure message when the action itself failed
            message_id: Id of the agent message that produced the action
            operation_id: Explicit id, e.g. the agent's tool-use id

        Returns:
            The recorded operation

        Raises:
            ValueError: If an operation with the same id is already recorded
        """
        if isinstance(kind, Operation):
            operation = kind
        else:
            if isinstance(payload, dict):
                payload = OperationPayload.model_validate(payload)
            fields = dict(
                kind=kind,
                payload=payload or OperationPayload(),
                status=status,
                error=error,
                message_id=message_id,
            )
            if operation_id:
                fields["id"] = operation_id
            operation = Operation(**fields)

        if operation.id in self._operations:
            raise ValueError(f"Operation {operation.id} is already recorded")

        self._capture_deleted_content(operation)

        if operation.session_id is None:
            operation.session_id = self._current_session_id

        self._operations[operation.id] = operation
        self._index(operation)
        self._establish_dependencies(operation)
        self._trim()

        logger.debug(f"Recorded {operation.kind.value} {operation.id}: {operation.describe()}")
        self._autosave()
        return operation

    @staticmethod
    def _capture_deleted_content(operation: Operation) -> None:
        """Read a file's content for a delete recorded before it happens."""
        p = operation.payload
        if operation.kind != OperationKind.FILE_DELETE or not p.file_path or p.content is not None:
            return
        if not fs.is_file(p.file_path):
            logger.warning(f"File not found for delete operation {operation.id}: {p.file_path}")
            return
        try:
            p.content = fs.read_text(p.file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not capture content of {p.file_path}: {str(e)}")

    def _index(self, operation: Operation) -> None:
        if operation.message_id:
            self._by_message.setdefault(operation.message_id, []).append(operation.id)
        session_key = operation.session_id or NO_SESSION_KEY
        self._by_session.setdefault(session_key, []).append(operation.id)

    @staticmethod
    def _related(earlier: Operation, newer: Operation) -> bool:
        """Whether two operations touch the same path or nested paths."""
        for new_path in newer.paths:
            for old_path in earlier.paths:
                if new_path == old_path:
                    return True
                if earlier.is_directory_operation and _is_within(new_path, old_path):
                    return True
                if newer.is_directory_operation and _is_within(old_path, new_path):
                    return True
        return False

    def _establish_dependencies(self, operation: Operation) -> None:
        """Link the new operation to earlier, not-undone operations it builds on."""
        if not operation.paths:
            return
        session_key = operation.session_id or NO_SESSION_KEY
        for op_id in self._by_session.get(session_key, []):
            earlier = self._operations.get(op_id)
            if earlier is None or earlier.id == operation.id:
                continue
            if earlier.status == OperationStatus.UNDONE:
                continue
            if self._related(earlier, operation):
                operation.add_dependency(earlier)

    def _trim(self) -> None:
        """Drop the oldest operations beyond max_operations."""
        excess = len(self._operations) - self.max_operations
        if excess <= 0:
            return

        removed = list(self._operations)[:excess]
        for op_id in removed:
            self._forget(self._operations.pop(op_id))
        logger.debug(f"Trimmed {len(removed)} old operation(s) from the log")

    def _forget(self, operation: Operation) -> None:
        """Remove every index entry and graph edge that refers to an operation."""
        for index, key in ((self._by_message, operation.message_id),
                           (self._by_session, operation.session_id or NO_SESSION_KEY)):
            ids = index.get(key) if key else None
            if ids is None:
                continue
            ids[:] = [i for i in ids if i != operation.id]
            if not ids:
                del index[key]

        for other_id in operation.depends_on + operation.dependents:
            other = self._operations.get(other_id)
            if other is None:
                continue
            other.depends_on = [i for i in other.depends_on if i != operation.id]
            other.dependents = [i for i in other.dependents if i != operation.id]

    # --- Queries ---

    def get_operation(self, operation_id: str) -> Optional[Operation]:
        return self._operations.get(operation_id)

    def get_operations_by_message(self, message_id: str) -> List[Operation]:
        ids = self._by_message.get(message_id, [])
        return [self._operations[i] for i in ids if i in self._operations]

    def get_session_operations(self, session_id: Optional[str] = None) -> List[Operation]:
        """
        Get operations for a session in chronological order.

        Without an explicit session id this is the current session plus any
        operations recorded before a session was established.
        """
        if session_id is not None:
            keys = [session_id]
        elif self._current_session_id:
            keys = [self._current_session_id, NO_SESSION_KEY]
        else:
            keys = [NO_SESSION_KEY]

        seen = set()
        result = []
        for key in keys:
            for op_id in self._by_session.get(key, []):
                if op_id in seen or op_id not in self._operations:
                    continue
                seen.add(op_id)
                result.append(self._operations[op_id])
        return sorted(result, key=lambda op: op.timestamp)

    def get_active_operations(self) -> List[Operation]:
        """Operations in the current session that can be undone."""
        return [op for op in self.get_session_operations() if op.can_undo]

    def get_undone_operations(self) -> List[Operation]:
        """Operations in the current session that can be redone."""
        return [op for op in self.get_session_operations() if op.can_redo]

    def get_cascading_operations(self, operation_id: str, action: str) -> List[Operation]:
        """
        Get the operations affected by undoing or redoing an operation.

        For undo these are the transitive dependents still in effect, newest
        first. For redo they are the transitive dependencies currently undone,
        oldest first. The operation itself is not included.
        """
        if operation_id not in self._operations:
            return []

        affected: Set[str] = set()
        to_process = [operation_id]
        while to_process:
            current_id = to_process.pop()
            if current_id in affected:
                continue
            affected.add(current_id)
            current = self._operations.get(current_id)
            if current is None:
                continue

            if action == UNDO:
                for dep_id in current.dependents:
                    dep = self._operations.get(dep_id)
                    if dep is not None and dep.can_undo:
                        to_process.append(dep_id)
            else:
                for dep_id in current.depends_on:
                    dep = self._operations.get(dep_id)
                    if dep is not None and dep.can_redo:
                        to_process.append(dep_id)

        affected.discard(operation_id)
        return sorted(
            (self._operations[i] for i in affected),
            key=lambda op: op.timestamp,
            reverse=(action == UNDO),
        )

    # --- Previews ---

    async def preview_undo(self, operation_id: str) -> Optional[OperationPreview]:
        """Describe an undo without performing it; None if it does not apply."""
        return await self._preview(operation_id, UNDO)

    async def preview_redo(self, operation_id: str) -> Optional[OperationPreview]:
        """Describe a redo without performing it; None if it does not apply."""
        return await self._preview(operation_id, REDO)

    async def _preview(self, operation_id: str, action: str) -> Optional[OperationPreview]:
        operation = self._operations.get(operation_id)
        if operation is None:
            return None
        if not (operation.can_undo if action == UNDO else operation.can_redo):
            return None

        try:
            strategy = self._registry.get_strategy(operation.kind)
        except UnknownOperationKind as e:
            return OperationPreview(
                operation=operation,
                changes=str(e),
                warnings=["No strategy found for this operation kind"],
            )

        if action == UNDO:
            preview = await strategy.preview_undo(operation)
        else:
            preview = await strategy.preview_redo(operation)

        cascading = self.get_cascading_operations(operation_id, action)
        if cascading:
            preview.warnings.append(self._cascade_warning(action, len(cascading), self.cascade_policy))
        preview.cascading_operations = cascading
        return preview

    @staticmethod
    def _cascade_warning(action: str, count: int, policy: CascadePolicy) -> str:
        relation = "dependent" if action == UNDO else "prerequisite"
        if policy == CascadePolicy.CASCADE:
            return f"This will also {action} {count} {relation} operation(s)"
        if policy == CascadePolicy.ADVISORY:
            return f"{count} {relation} operation(s) will not be {action}ne and may be left inconsistent"
        return f"{count} {relation} operation(s) must be {action}ne first"

    # --- Undo / redo ---

    async def undo(
        self,
        operation_id: str,
        cascade: Optional[Union[CascadePolicy, str]] = None,
    ) -> OperationResult:
        """
        Undo an operation.

        Args:
            operation_id: Id of the operation to undo
            cascade: Overrides the tracker's cascade policy for this call

        Returns:
            The outcome; failures are reported, never raised
        """
        return await self._reverse(operation_id, UNDO, cascade)

    async def redo(
        self,
        operation_id: str,
        cascade: Optional[Union[CascadePolicy, str]] = None,
    ) -> OperationResult:
        """
        Redo a previously undone operation.

        Args:
            operation_id: Id of the operation to redo
            cascade: Overrides the tracker's cascade policy for this call

        Returns:
            The outcome; failures are reported, never raised
        """
        return await self._reverse(operation_id, REDO, cascade)

    async def _reverse(
        self,
        operation_id: str,
        action: str,
        cascade: Optional[Union[CascadePolicy, str]],
    ) -> OperationResult:
        operation = self._operations.get(operation_id)
        if operation is None:
            return OperationResult(
                success=False,
                message=f"Operation not found: {operation_id}",
                error_kind=ErrorKind.OPERATION_NOT_FOUND,
            )

        if not (operation.can_undo if action == UNDO else operation.can_redo):
            return OperationResult(
                success=False,
                message=f"Cannot {action} {operation.describe()}: operation is {operation.status.value}",
                error_kind=ErrorKind.INVALID_STATE,
                affected_operations=[operation],
            )

        try:
            policy = CascadePolicy(cascade) if cascade is not None else self.cascade_policy
        except ValueError:
            return OperationResult(
                success=False,
                message=f"Unknown cascade policy: {cascade}",
                error_kind=ErrorKind.VALIDATION_ERROR,
            )

        log = logger.with_context(operation_id=operation_id, action=action, policy=policy.value)
        cascading = self.get_cascading_operations(operation_id, action)
        warnings: List[str] = []
        if cascading:
            if policy == CascadePolicy.BLOCK:
                log.info(f"{action} of {operation_id} blocked by {len(cascading)} operation(s)")
                return OperationResult(
                    success=False,
                    message=(f"Cannot {action} {operation.describe()}: "
                             f"{self._cascade_warning(action, len(cascading), policy)}"),
                    error_kind=ErrorKind.DEPENDENCY_BLOCKED,
                    affected_operations=cascading,
                )
            if policy == CascadePolicy.ADVISORY:
                log.warning(f"{action} of {operation_id} proceeds without {len(cascading)} cascading operation(s)")
                warnings.append(self._cascade_warning(action, len(cascading), policy))
                cascading = []

        batch = cascading + [operation]
        log.debug(f"Reversing {len(batch)} operation(s)")
        busy = [op.id for op in batch if op.id in self._in_flight]
        if busy:
            return OperationResult(
                success=False,
                message=f"Cannot {action} {operation.describe()}: {', '.join(busy)} already in progress",
                error_kind=ErrorKind.IN_PROGRESS,
            )

        batch_ids = {op.id for op in batch}
        self._in_flight.update(batch_ids)
        results: List[OperationResult] = []
        try:
            for target in batch:
                result = await self._dispatch(target, action)
                self.apply_result(target.id, result, action)
                results.append(result)
                if not result.success:
                    break
        finally:
            self._in_flight.difference_update(batch_ids)
            self._autosave()

        for result in results:
            warnings.extend(result.warnings)

        last = results[-1]
        if len(batch) == 1:
            return last.model_copy(update={"affected_operations": batch, "warnings": warnings})

        succeeded = sum(1 for r in results if r.success)
        verb = "Undone" if action == UNDO else "Redone"
        message = f"{verb} {succeeded} of {len(batch)} operation(s)"
        if not last.success:
            message += f"; stopped at {batch[len(results) - 1].id}: {last.message}"
        return OperationResult(
            success=last.success and succeeded == len(batch),
            message=message,
            backup_path=last.backup_path if last.success else None,
            affected_operations=batch,
            error_kind=last.error_kind,
            warnings=warnings,
        )

    def _build_context(self) -> OperationContext:
        return OperationContext(
            backup_dir=self._backup_store.backup_dir,
            backup_file=self._backup_store.backup_file,
            get_backup_path=self._backup_store.get_backup_path,
            tracker=self,
        )

    async def _dispatch(self, operation: Operation, action: str) -> OperationResult:
        try:
            strategy = self._registry.get_strategy(operation.kind)
        except UnknownOperationKind as e:
            logger.error(f"Cannot {action} {operation.id}: {str(e)}")
            return OperationResult(success=False, message=str(e), error_kind=e.kind)

        logger.debug(f"Dispatching {action} of {operation.id} to {type(strategy).__name__}")
        context = self._build_context()
        try:
            if action == UNDO:
                return await strategy.undo(operation, context)
            return await strategy.redo(operation, context)
        except Exception as e:
            logger.exception(f"Strategy raised during {action} of {operation.id}: {str(e)}")
            return OperationResult(
                success=False,
                message=f"Failed to {action} {operation.describe()}: {e}",
                error_kind=ErrorKind.IO_FAILURE,
            )

    def apply_result(self, operation_id: str, result: OperationResult, action: str) -> Operation:
        """
        Apply an undo/redo result to an operation's status.

        Success flips the operation between in effect and undone, or marks it
        partial when only some of its sub-steps were applied. A failure
        leaves the status alone and records the error, unless no retry can
        ever succeed, in which case the operation is marked failed.

        Raises:
            KeyError: If the operation is not in the log
        """
        operation = self._operations[operation_id]

        if result.success:
            if result.partial:
                operation.status = OperationStatus.PARTIAL
            elif action == UNDO:
                operation.status = OperationStatus.UNDONE
            else:
                operation.status = OperationStatus.ACTIVE
            operation.error = None
            logger.info(f"{operation_id} is now {operation.status.value}")
            return operation

        operation.error = result.message
        if result.error_kind in NON_RECOVERABLE_ERRORS:
            operation.status = OperationStatus.FAILED
            logger.error(f"{operation_id} marked failed: {result.message}")
        else:
            logger.warning(f"{action} of {operation_id} failed: {result.message}")
        return operation

    # --- Persistence ---

    def _autosave(self) -> None:
        if self.autosave and self.storage_file is not None:
            self.save()

    def save(self) -> bool:
        """
        Write the log to the workspace's operations file.

        Returns:
            True if the log was written
        """
        storage_file = self.storage_file
        if storage_file is None:
            return False

        data = {
            "workspaceId": self._workspace_id,
            "currentSessionId": self._current_session_id,
            "operations": [op.to_dict() for op in self._operations.values()],
        }

        try:
            storage_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{storage_file.name}.", dir=storage_file.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, storage_file)
            except Exception:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except Exception as e:
            logger.error(f"Error saving operation log: {str(e)}")
            return False

        logger.debug(f"Saved {len(self._operations)} operation(s) to {storage_file}")
        return True

    def load(self) -> bool:
        """
        Replace the in-memory log with the workspace's operations file.

        Malformed entries are skipped and logged.

        Returns:
            True if a log was loaded
        """
        storage_file = self.storage_file
        if storage_file is None or not storage_file.is_file():
            logger.debug(f"No saved operations found for workspace {self._workspace_id}")
            return False

        try:
            with open(storage_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading operation log {storage_file}: {str(e)}")
            return False

        if not isinstance(data, dict):
            logger.error(f"Operation log {storage_file} is not a JSON object")
            return False

        if data.get("workspaceId") != self._workspace_id:
            logger.warning(f"Workspace id mismatch in {storage_file}; ignoring it")
            return False

        operations: Dict[str, Operation] = {}
        for entry in data.get("operations") or []:
            if not isinstance(entry, dict):
                logger.error(f"Skipping malformed operation entry: {entry!r}")
                continue
            try:
                operation = Operation.from_dict(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.error(f"Skipping malformed operation entry: {str(e)}")
                continue
            operations[operation.id] = operation

        # Drop edges to entries that were skipped
        for operation in operations.values():
            operation.depends_on = [i for i in operation.depends_on if i in operations]
            operation.dependents = [i for i in operation.dependents if i in operations]

        self._operations = operations
        self._by_message = {}
        self._by_session = {}
        for operation in operations.values():
            self._index(operation)
        self._current_session_id = data.get("currentSessionId")

        logger.info(f"Loaded {len(operations)} operation(s) for workspace {self._workspace_id}")
        return True

    def clear(self) -> None:
        """Remove every operation from the log."""
        self._operations.clear()
        self._by_message.clear()
        self._by_session.clear()
        logger.info("Cleared operation log")
        self._autosave()
