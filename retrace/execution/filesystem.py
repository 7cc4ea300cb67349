# retrace/execution/filesystem.py
"""
Recorded file system actions.

Each helper performs one file system change and then records it with the
tracker, capturing whatever content a later undo will need. Nothing is
recorded when the change fails.
"""
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from retrace.models import EditSpec, FileEntry, Operation, OperationKind, OperationStatus
from retrace.operations import fs
from retrace.operations.strategies.file_edit import FileEditStrategy
from retrace.tracker import OperationTracker
from retrace.utils.logging import get_logger

logger = get_logger(__name__)


class FileSystemError(Exception):
    """Exception raised for file system operation errors."""
    pass


async def create_file(
    tracker: OperationTracker,
    path: Union[str, Path],
    content: str = "",
    message_id: Optional[str] = None,
) -> Operation:
    """
    Create a new file with the given content.

    Args:
        tracker: Tracker the action is recorded with
        path: The path where the file should be created
        content: Content to write to the file
        message_id: Id of the agent message requesting the action

    Returns:
        The recorded FILE_CREATE operation
    """
    path_obj = Path(path)

    try:
        if path_obj.exists():
            raise FileSystemError(f"File already exists: {path_obj}")

        fs.write_text(path_obj, content)
        logger.info(f"Created file at {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error creating file at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to create file: {str(e)}") from e

    return tracker.record(
        OperationKind.FILE_CREATE,
        {"file_path": str(path_obj), "content": content},
        message_id=message_id,
    )


async def write_file(
    tracker: OperationTracker,
    path: Union[str, Path],
    content: str,
    message_id: Optional[str] = None,
) -> Operation:
    """
    Write content to a file, creating it if needed.

    Overwriting an existing file is recorded as an edit replacing its whole
    previous content.

    Returns:
        The recorded FILE_CREATE or FILE_EDIT operation
    """
    path_obj = Path(path)
    if not path_obj.exists():
        return await create_file(tracker, path_obj, content, message_id=message_id)

    try:
        if not path_obj.is_file():
            raise FileSystemError(f"Path is not a file: {path_obj}")

        previous = fs.read_text(path_obj)
        fs.write_text(path_obj, content)
        logger.info(f"Wrote to file at {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error writing to file at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to write file: {str(e)}") from e

    return tracker.record(
        OperationKind.FILE_EDIT,
        {"file_path": str(path_obj), "old_string": previous, "new_string": content},
        message_id=message_id,
    )


async def edit_file(
    tracker: OperationTracker,
    path: Union[str, Path],
    old_string: str,
    new_string: str,
    replace_all: bool = False,
    message_id: Optional[str] = None,
) -> Operation:
    """
    Replace an exact substring in a file.

    Args:
        tracker: Tracker the action is recorded with
        path: The file to edit
        old_string: Text to replace; must be present
        new_string: Replacement text
        replace_all: Replace every occurrence instead of the first
        message_id: Id of the agent message requesting the action

    Returns:
        The recorded FILE_EDIT operation
    """
    return await _apply_edits(
        tracker,
        path,
        [EditSpec(old_string=old_string, new_string=new_string, replace_all=replace_all)],
        OperationKind.FILE_EDIT,
        message_id,
    )


async def multi_edit_file(
    tracker: OperationTracker,
    path: Union[str, Path],
    edits: List[Union[EditSpec, Dict[str, Any]]],
    message_id: Optional[str] = None,
) -> Operation:
    """
    Apply several exact-substring replacements to a file, in order.

    Either every edit applies or the file is left untouched.

    Returns:
        The recorded MULTI_EDIT operation
    """
    specs = [e if isinstance(e, EditSpec) else EditSpec.model_validate(e) for e in edits]
    if not specs:
        raise FileSystemError("No edits specified")
    return await _apply_edits(tracker, path, specs, OperationKind.MULTI_EDIT, message_id)


async def _apply_edits(
    tracker: OperationTracker,
    path: Union[str, Path],
    edits: List[EditSpec],
    kind: OperationKind,
    message_id: Optional[str],
) -> Operation:
    path_obj = Path(path)

    try:
        if not path_obj.is_file():
            raise FileSystemError(f"File does not exist: {path_obj}")

        for index, edit in enumerate(edits):
            if not edit.old_string or edit.new_string is None:
                raise FileSystemError(f"Edit {index} needs a non-empty old string and a new string")

        original = fs.read_text(path_obj)
        content, skipped = FileEditStrategy.replay_edits(original, edits, undo=False)
        if skipped:
            raise FileSystemError(
                f"String to replace not found in {path_obj} for edit(s): {', '.join(map(str, skipped))}"
            )

        fs.write_text(path_obj, content)
        logger.info(f"Applied {len(edits)} edit(s) to {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error editing file at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to edit file: {str(e)}") from e

    if kind == OperationKind.MULTI_EDIT:
        payload = {"file_path": str(path_obj), "edits": edits}
    else:
        edit = edits[0]
        payload = {
            "file_path": str(path_obj),
            "old_string": edit.old_string,
            "new_string": edit.new_string,
            "replace_all": edit.replace_all,
        }
    return tracker.record(kind, payload, message_id=message_id)


async def delete_file(
    tracker: OperationTracker,
    path: Union[str, Path],
    message_id: Optional[str] = None,
) -> Operation:
    """
    Delete a file, capturing its content first.

    Returns:
        The recorded FILE_DELETE operation
    """
    path_obj = Path(path)

    try:
        if not path_obj.exists():
            raise FileSystemError(f"File does not exist: {path_obj}")
        if not path_obj.is_file():
            raise FileSystemError(f"Path is not a file: {path_obj}")

        content = fs.read_text(path_obj)
        fs.remove_file(path_obj)
        logger.info(f"Deleted file at {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error deleting file at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to delete file: {str(e)}") from e

    return tracker.record(
        OperationKind.FILE_DELETE,
        {"file_path": str(path_obj), "content": content},
        message_id=message_id,
    )


async def rename_file(
    tracker: OperationTracker,
    source: Union[str, Path],
    destination: Union[str, Path],
    message_id: Optional[str] = None,
) -> Operation:
    """
    Move a file or directory to a new path that must not exist yet.

    Returns:
        The recorded FILE_RENAME operation
    """
    source_obj = Path(source)
    dest_obj = Path(destination)

    try:
        if not source_obj.exists():
            raise FileSystemError(f"Source does not exist: {source_obj}")
        if dest_obj.exists():
            raise FileSystemError(f"Destination already exists: {dest_obj}")

        fs.rename(source_obj, dest_obj)
        logger.info(f"Moved {source_obj} to {dest_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error moving {source_obj} to {dest_obj}: {str(e)}")
        raise FileSystemError(f"Failed to move file: {str(e)}") from e

    return tracker.record(
        OperationKind.FILE_RENAME,
        {"old_path": str(source_obj), "new_path": str(dest_obj)},
        message_id=message_id,
    )


async def create_directory(
    tracker: OperationTracker,
    path: Union[str, Path],
    message_id: Optional[str] = None,
) -> Operation:
    """
    Create a directory (and any missing parents) that does not exist yet.

    Returns:
        The recorded DIRECTORY_CREATE operation
    """
    path_obj = Path(path)

    try:
        if path_obj.exists():
            raise FileSystemError(f"Path already exists: {path_obj}")

        fs.make_dir(path_obj)
        logger.info(f"Created directory at {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error creating directory at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to create directory: {str(e)}") from e

    return tracker.record(
        OperationKind.DIRECTORY_CREATE,
        {"dir_path": str(path_obj)},
        message_id=message_id,
    )


def capture_tree(path: Path) -> List[FileEntry]:
    """
    Capture every file below a directory, relative to it.

    Files that are not valid UTF-8 text are captured without content.
    """
    entries = []
    for root, dirs, files in os.walk(path):
        dirs.sort()
        for name in sorted(files):
            file_path = Path(root) / name
            relative = str(file_path.relative_to(path))
            try:
                content = fs.read_text(file_path)
            except UnicodeDecodeError:
                logger.warning(f"Not capturing content of non-text file {file_path}")
                content = None
            entries.append(FileEntry(path=relative, content=content))
    return entries


async def delete_directory(
    tracker: OperationTracker,
    path: Union[str, Path],
    recursive: bool = False,
    message_id: Optional[str] = None,
) -> Operation:
    """
    Delete a directory, capturing its files first.

    Args:
        tracker: Tracker the action is recorded with
        path: The directory to delete
        recursive: Delete its contents too (rm -r rather than rmdir)
        message_id: Id of the agent message requesting the action

    Returns:
        The recorded DIRECTORY_DELETE operation
    """
    path_obj = Path(path)

    try:
        if not path_obj.exists():
            raise FileSystemError(f"Directory does not exist: {path_obj}")
        if not path_obj.is_dir():
            raise FileSystemError(f"Path is not a directory: {path_obj}")

        files = capture_tree(path_obj)
        if recursive:
            fs.remove_tree(path_obj)
            logger.info(f"Recursively deleted directory at {path_obj}")
        else:
            path_obj.rmdir()
            logger.info(f"Deleted directory at {path_obj}")

    except FileSystemError:
        raise
    except Exception as e:
        logger.exception(f"Error deleting directory at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to delete directory: {str(e)}") from e

    return tracker.record(
        OperationKind.DIRECTORY_DELETE,
        {"dir_path": str(path_obj), "files": files},
        message_id=message_id,
    )


def record_command(
    tracker: OperationTracker,
    command: str,
    output: Optional[str] = None,
    success: bool = True,
    message_id: Optional[str] = None,
) -> Operation:
    """Record a shell command that was run outside retrace."""
    return tracker.record(
        OperationKind.BASH_COMMAND,
        {"command": command, "output": output},
        status=OperationStatus.ACTIVE if success else OperationStatus.FAILED,
        error=None if success else "Command failed",
        message_id=message_id,
    )
