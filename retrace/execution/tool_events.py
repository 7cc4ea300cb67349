# retrace/execution/tool_events.py
"""
Ingestion of agent tool-use events.

Maps `{name, input, id}` tool-use events emitted by a coding agent onto
recorded operations. Shell commands that are a single simple rm, rmdir,
mv or mkdir are recorded as the matching file or directory operation so
they can be reversed; every other command is recorded as a bash command.
"""
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from retrace.execution.filesystem import capture_tree
from retrace.models import Operation, OperationKind
from retrace.tracker import OperationTracker
from retrace.utils.logging import get_logger

logger = get_logger(__name__)

# Characters that make a command more than one simple invocation or expand paths
_SHELL_SPECIAL = "`$*?;|&<>"


def _split_flags(args: List[str]) -> Tuple[List[str], List[str]]:
    flags, operands = [], []
    for arg in args:
        (flags if arg.startswith("-") and arg != "-" else operands).append(arg)
    return flags, operands


def _is_recursive(flags: List[str]) -> bool:
    for flag in flags:
        if flag == "--recursive":
            return True
        if not flag.startswith("--") and ("r" in flag or "R" in flag):
            return True
    return False


def analyze_bash_command(command: str) -> Optional[Tuple[OperationKind, Dict[str, Any]]]:
    """
    Recognize a shell command that is a reversible file system action.

    Args:
        command: The command line as given to the shell

    Returns:
        The operation kind and payload, or None for any other command
    """
    try:
        tokens = shlex.split(command)
    except ValueError:
        return None

    if not tokens or any(ch in command for ch in _SHELL_SPECIAL):
        return None

    program, args = tokens[0], tokens[1:]
    flags, operands = _split_flags(args)

    if program == "rm" and len(operands) == 1:
        if _is_recursive(flags):
            return OperationKind.DIRECTORY_DELETE, {"dir_path": operands[0]}
        return OperationKind.FILE_DELETE, {"file_path": operands[0]}

    if program == "rmdir" and not flags and len(operands) == 1:
        return OperationKind.DIRECTORY_DELETE, {"dir_path": operands[0]}

    if program == "mv" and len(operands) == 2:
        return OperationKind.FILE_RENAME, {"old_path": operands[0], "new_path": operands[1]}

    if program == "mkdir" and all(f in ("-p", "--parents") for f in flags) and len(operands) == 1:
        return OperationKind.DIRECTORY_CREATE, {"dir_path": operands[0]}

    return None


class ToolEventRecorder:
    """Records agent tool-use events with a tracker."""

    def __init__(self, tracker: OperationTracker, cwd: Optional[Union[str, Path]] = None):
        """
        Initialize the recorder.

        Args:
            tracker: Tracker operations are recorded with
            cwd: Directory relative paths in shell commands resolve against
        """
        self._tracker = tracker
        self._cwd = Path(cwd) if cwd else None

    def _resolve(self, path: str) -> str:
        if self._cwd is None or os.path.isabs(path):
            return path
        return str(self._cwd / path)

    def _resolve_paths(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        for key in ("file_path", "dir_path", "old_path", "new_path"):
            if payload.get(key):
                payload[key] = self._resolve(payload[key])
        return payload

    def to_operation_fields(self, event: Dict[str, Any]) -> Optional[Tuple[OperationKind, Dict[str, Any]]]:
        """Map a tool-use event to an operation kind and payload without recording it."""
        name = event.get("name")
        tool_input = event.get("input") or {}

        if name == "Write":
            return OperationKind.FILE_CREATE, {
                "file_path": tool_input.get("file_path"),
                "content": tool_input.get("content") or "",
            }

        if name == "Edit":
            return OperationKind.FILE_EDIT, {
                "file_path": tool_input.get("file_path"),
                "old_string": tool_input.get("old_string") or "",
                "new_string": tool_input.get("new_string") or "",
                "replace_all": bool(tool_input.get("replace_all", False)),
            }

        if name == "MultiEdit":
            return OperationKind.MULTI_EDIT, {
                "file_path": tool_input.get("file_path"),
                "edits": tool_input.get("edits") or [],
            }

        if name == "Bash":
            command = tool_input.get("command") or ""
            analyzed = analyze_bash_command(command)
            if analyzed is None:
                return OperationKind.BASH_COMMAND, {"command": command}
            kind, payload = analyzed
            return kind, self._resolve_paths(payload)

        return None

    def record_event(self, event: Dict[str, Any], message_id: Optional[str] = None) -> Optional[Operation]:
        """
        Record a tool-use event.

        Shell deletions should be ingested before the command runs so the
        content they remove can still be captured.

        Args:
            event: Tool-use event with name, input and id
            message_id: Id of the agent message containing the event

        Returns:
            The recorded operation, or None for tools that change nothing
        """
        fields = self.to_operation_fields(event)
        if fields is None:
            logger.debug(f"Ignoring tool event {event.get('name')}")
            return None
        kind, payload = fields

        event_id = event.get("id")
        if event_id and self._tracker.get_operation(event_id) is not None:
            logger.debug(f"Tool event {event_id} already recorded")
            return self._tracker.get_operation(event_id)

        if kind == OperationKind.DIRECTORY_DELETE and os.path.isdir(payload["dir_path"]):
            payload["files"] = capture_tree(Path(payload["dir_path"]))

        operation = self._tracker.record(kind, payload, message_id=message_id, operation_id=event_id)
        logger.info(f"Recorded tool event {event.get('name')} as {operation.describe()}")
        return operation
