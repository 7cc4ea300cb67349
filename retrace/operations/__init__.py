# retrace/operations/__init__.py
"""
Operation strategies for retrace.

Each operation kind has a strategy that can preview, undo and redo it;
the registry dispatches a kind to its strategy.
"""
from .interfaces import OperationContext, OperationPreview, OperationResult, OperationStrategy
from .base import BaseOperationStrategy
from .registry import StrategyRegistry

__all__ = [
    'BaseOperationStrategy',
    'OperationContext',
    'OperationPreview',
    'OperationResult',
    'OperationStrategy',
    'StrategyRegistry',
]
