# retrace/operations/strategies/__init__.py
"""Kind-specific undo/redo strategies."""
from .bash_command import BashCommandStrategy
from .directory_create import DirectoryCreateStrategy
from .directory_delete import DirectoryDeleteStrategy
from .file_create import FileCreateStrategy
from .file_delete import FileDeleteStrategy
from .file_edit import FileEditStrategy
from .file_rename import FileRenameStrategy

__all__ = [
    'BashCommandStrategy',
    'DirectoryCreateStrategy',
    'DirectoryDeleteStrategy',
    'FileCreateStrategy',
    'FileDeleteStrategy',
    'FileEditStrategy',
    'FileRenameStrategy',
]
