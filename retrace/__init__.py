# retrace/__init__.py
"""
retrace: reversible operation log for file system actions performed by
coding agents.
"""

__version__ = '0.1.0'

from retrace.models import CascadePolicy, Operation, OperationKind, OperationStatus
from retrace.backup import BackupStore
from retrace.tracker import OperationTracker

__all__ = [
    'BackupStore',
    'CascadePolicy',
    'Operation',
    'OperationKind',
    'OperationStatus',
    'OperationTracker',
    '__version__',
]
