# retrace/operations/strategies/file_edit.py
"""
Undo/redo for FILE_EDIT and MULTI_EDIT operations.

Edits are exact-substring replacements. Redo replays them in recorded
order; undo replays the mirror replacements (new -> old) from the last
edit back to the first. An edit whose source text is no longer present is
skipped rather than treated as an error, since the file may have changed
after the edit was recorded. An empty source only matches an empty file;
anywhere else there is no way to locate the text to restore.
"""
from pathlib import Path
from typing import List, Tuple

from retrace.constants import REDO_BACKUP_SUFFIX, UNDO_BACKUP_SUFFIX
from retrace.errors import ContentUnavailable, TargetNotFound, ValidationError
from retrace.models import EditSpec, Operation, OperationKind
from retrace.operations import fs
from retrace.operations.base import BaseOperationStrategy
from retrace.operations.interfaces import OperationContext, OperationPreview, OperationResult


class FileEditStrategy(BaseOperationStrategy):
    """Handles both single edits and ordered multi-edits against one file."""

    # --- Previews ---

    async def preview_undo(self, operation: Operation) -> OperationPreview:
        return self._preview(operation, undo=True)

    async def preview_redo(self, operation: Operation) -> OperationPreview:
        return self._preview(operation, undo=False)

    def _preview(self, operation: Operation, undo: bool) -> OperationPreview:
        path = operation.payload.file_path
        if not path:
            return self.basic_preview(operation, "No file path specified", ["No file path specified"])

        if operation.kind == OperationKind.MULTI_EDIT:
            count = len(operation.payload.edits or [])
            if count == 0:
                return self.basic_preview(operation, f"No edits specified for {path}", ["No edits specified"])
            if undo:
                return self.basic_preview(operation, f"Will revert {count} edit(s) in {path}")
            return self.basic_preview(operation, f"Will reapply {count} edit(s) to {path}")

        old, new = operation.payload.old_string, operation.payload.new_string
        if old is None or new is None:
            return self.basic_preview(
                operation, f"Insufficient data to {'undo' if undo else 'redo'} edit of {path}",
                ["Edit is missing its old or new string"],
            )
        source, target = (new, old) if undo else (old, new)

        try:
            current = fs.read_text(path)
        except OSError:
            return self.basic_preview(operation, f"File not accessible: {path}", [f"File not accessible: {path}"])

        if not source:
            if not current:
                return self.basic_preview(operation, f"Will write the recorded content to empty file {path}")
            return self.basic_preview(
                operation,
                f"Insufficient data to {'undo' if undo else 'redo'} edit of {path}",
                ["The edit has an empty source string and the file is not empty"],
            )
        if source in current:
            return self.basic_preview(operation, f'Will replace "{source}" with "{target}" in {path}')
        return self.basic_preview(
            operation,
            "Target string not found in current file",
            [f'"{source}" not found in {path}; the file will be left unchanged'],
        )

    # --- Mutations ---

    async def undo(self, operation: Operation, context: OperationContext) -> OperationResult:
        return await self.execute(operation, "undo", lambda: self._replay(operation, context, undo=True))

    async def redo(self, operation: Operation, context: OperationContext) -> OperationResult:
        return await self.execute(operation, "redo", lambda: self._replay(operation, context, undo=False))

    def _edits(self, operation: Operation) -> List[EditSpec]:
        """Collect the operation's edits, validating them before any I/O."""
        p = operation.payload
        if operation.kind == OperationKind.MULTI_EDIT:
            if not p.edits:
                raise ValidationError("No edits specified")
            edits = list(p.edits)
        else:
            edits = [EditSpec(old_string=p.old_string, new_string=p.new_string, replace_all=bool(p.replace_all))]

        for index, edit in enumerate(edits):
            if edit.old_string is None or edit.new_string is None:
                raise ValidationError(f"Edit {index} is missing its old or new string")
        return edits

    async def _replay(self, operation: Operation, context: OperationContext, undo: bool) -> OperationResult:
        path = self.validate_file_path(operation)
        edits = self._edits(operation)

        if not fs.is_file(path):
            raise TargetNotFound(f"file not found: {path}")

        # Back up the current on-disk state, not the state at record time
        suffix = UNDO_BACKUP_SUFFIX if undo else REDO_BACKUP_SUFFIX
        backup_path = await context.backup_file(operation.id + suffix, Path(path))

        original = fs.read_text(path)
        content, skipped = self.replay_edits(original, edits, undo)
        if content != original:
            fs.write_text(path, content)

        warnings = []
        for index in skipped:
            edit = edits[index]
            source = edit.new_string if undo else edit.old_string
            warnings.append(f'Edit {index}: "{source}" not found in {path}; skipped')
            self._logger.warning(f"{operation.id}: edit {index} skipped, target string not found in {path}")

        verb = "reverted" if undo else "redone"
        if operation.kind == OperationKind.MULTI_EDIT:
            applied = len(edits) - len(skipped)
            message = f"Multi-edit {verb}: {path} ({applied} of {len(edits)} edit(s) applied)"
            if 0 < applied < len(edits):
                return self.success(message, backup_path, warnings, partial=True)
        elif skipped:
            message = f"File edit {verb}: {path} (target string not found, file unchanged)"
        else:
            message = f"File edit {verb}: {path}"

        return self.success(message, backup_path, warnings)

    @classmethod
    def replay_edits(cls, content: str, edits: List[EditSpec], undo: bool) -> Tuple[str, List[int]]:
        """
        Apply a sequence of edits to content.

        Args:
            content: Current file content
            edits: Edits in recorded order
            undo: Replay mirror replacements in reverse order when True

        Returns:
            The resulting content and the indices of skipped edits

        Raises:
            ContentUnavailable: If an edit with an empty source meets non-empty content
        """
        indices = range(len(edits) - 1, -1, -1) if undo else range(len(edits))
        skipped = []
        for index in indices:
            edit = edits[index]
            if undo:
                source, target = edit.new_string, edit.old_string
            else:
                source, target = edit.old_string, edit.new_string
            if not source:
                if content:
                    action = "undo" if undo else "redo"
                    raise ContentUnavailable(f"Insufficient data to {action} edit {index}: its source string is empty")
                content = target
                continue
            content, applied = cls.apply_edit(content, source, target, edit.replace_all)
            if not applied:
                skipped.append(index)
        return content, sorted(skipped)
