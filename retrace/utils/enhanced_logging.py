# retrace/utils/enhanced_logging.py
from typing import Dict, Any, Optional

from loguru import logger as _root_logger


class EnhancedLogger:
    """Loguru-backed logger with a module name and persistent context."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self._name = name
        self._context: Dict[str, Any] = dict(context or {})

    def with_context(self, **context) -> 'EnhancedLogger':
        """Create a new logger with added context."""
        return EnhancedLogger(self._name, {**self._context, **context})

    def _bound(self, extra: Optional[Dict[str, Any]] = None):
        context = {**self._context}
        if extra:
            context.update(extra)
        # depth=1 skips the debug()/info()/... wrapper frame
        return _root_logger.bind(name=self._name, context=context).opt(depth=1)

    def debug(self, msg: str, *args, **kwargs) -> None:
        """Log a debug message with context."""
        self._bound(kwargs.pop("extra", None)).debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        """Log an info message with context."""
        self._bound(kwargs.pop("extra", None)).info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        """Log a warning message with context."""
        self._bound(kwargs.pop("extra", None)).warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        """Log an error message with context."""
        self._bound(kwargs.pop("extra", None)).error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        """Log an error message with the active exception's traceback."""
        self._bound(kwargs.pop("extra", None)).exception(msg, *args, **kwargs)

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._name

    @property
    def context(self) -> Dict[str, Any]:
        """Get a copy of the current context."""
        return dict(self._context)
