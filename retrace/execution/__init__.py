# retrace/execution/__init__.py
"""
Recorded file system actions and agent tool-event ingestion.
"""
from .filesystem import (
    FileSystemError,
    create_directory,
    create_file,
    delete_directory,
    delete_file,
    edit_file,
    multi_edit_file,
    record_command,
    rename_file,
    write_file,
)
from .tool_events import ToolEventRecorder, analyze_bash_command

__all__ = [
    'FileSystemError',
    'ToolEventRecorder',
    'analyze_bash_command',
    'create_directory',
    'create_file',
    'delete_directory',
    'delete_file',
    'edit_file',
    'multi_edit_file',
    'record_command',
    'rename_file',
    'write_file',
]
