# retrace/operations/registry.py
"""
Strategy registry.

Maps each operation kind to its strategy. The table must cover the whole
closed set of kinds; a kind outside it is rejected, never defaulted.
"""
from typing import Dict, Optional, Union

from retrace.errors import UnknownOperationKind
from retrace.models import OperationKind
from retrace.operations.interfaces import OperationStrategy
from retrace.operations.strategies import (
    BashCommandStrategy,
    DirectoryCreateStrategy,
    DirectoryDeleteStrategy,
    FileCreateStrategy,
    FileDeleteStrategy,
    FileEditStrategy,
    FileRenameStrategy,
)
from retrace.utils.logging import get_logger

logger = get_logger(__name__)


def _default_strategies() -> Dict[OperationKind, OperationStrategy]:
    edit_strategy = FileEditStrategy()
    return {
        OperationKind.FILE_CREATE: FileCreateStrategy(),
        OperationKind.FILE_EDIT: edit_strategy,
        OperationKind.MULTI_EDIT: edit_strategy,
        OperationKind.FILE_DELETE: FileDeleteStrategy(),
        OperationKind.FILE_RENAME: FileRenameStrategy(),
        OperationKind.DIRECTORY_CREATE: DirectoryCreateStrategy(),
        OperationKind.DIRECTORY_DELETE: DirectoryDeleteStrategy(),
        OperationKind.BASH_COMMAND: BashCommandStrategy(),
    }


class StrategyRegistry:
    """Dispatch table from operation kind to strategy."""

    def __init__(self, strategies: Optional[Dict[OperationKind, OperationStrategy]] = None):
        """
        Initialize the registry.

        Args:
            strategies: Replacement table; must cover every OperationKind

        Raises:
            ValueError: If any kind is left without a strategy
        """
        self._strategies = dict(strategies) if strategies is not None else _default_strategies()

        missing = [kind.value for kind in OperationKind if kind not in self._strategies]
        if missing:
            raise ValueError(f"No strategy registered for operation kind(s): {', '.join(missing)}")

        logger.debug(f"Strategy registry initialized with {len(self._strategies)} kinds")

    @staticmethod
    def _coerce(kind: Union[OperationKind, str]) -> OperationKind:
        if isinstance(kind, OperationKind):
            return kind
        try:
            return OperationKind(kind)
        except ValueError:
            raise UnknownOperationKind(kind) from None

    def get_strategy(self, kind: Union[OperationKind, str]) -> OperationStrategy:
        """
        Get the strategy for an operation kind.

        Raises:
            UnknownOperationKind: If the kind is not part of the closed set
        """
        kind = self._coerce(kind)
        strategy = self._strategies.get(kind)
        if strategy is None:
            raise UnknownOperationKind(kind.value)
        return strategy

    def has_strategy(self, kind: Union[OperationKind, str]) -> bool:
        try:
            self.get_strategy(kind)
        except UnknownOperationKind:
            return False
        return True
