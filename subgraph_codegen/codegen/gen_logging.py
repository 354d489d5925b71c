"""
Logging for the subgraph type generation pipeline.

Pipeline modules log through get_logger(__name__), which places them
under the "subgraph.gen" hierarchy. Generation units run concurrently,
so every record logged while a unit runs is tagged with that unit's
context ("Token > ERC20", "schema", ...) and printed with it:

    Token > ERC20: [GENERATED] generated/Token/ERC20.ts
    schema: [GENERATED] generated/schema.ts

Records logged outside a unit print as-is. Levels are set by the CLI.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

_LOGGER_NAME = "subgraph.gen"

_unit: ContextVar[Optional[str]] = ContextVar("subgraph_gen_unit", default=None)


def get_logger(name: str = None) -> logging.Logger:
    """
    Return a child logger under the subgraph.gen hierarchy.

    Args:
        name: Module __name__, or None for the root subgraph.gen logger.
    """
    if name is None or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    # "subgraph_codegen.codegen.mappers.abi_mapper" -> "subgraph.gen.abi_mapper"
    short = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"{_LOGGER_NAME}.{short}")


def current_unit() -> Optional[str]:
    return _unit.get()


@contextmanager
def unit_context(context: str):
    """Tag records logged in this block (and this thread) with a unit context."""
    token = _unit.set(context)
    try:
        yield
    finally:
        _unit.reset(token)


class UnitContextFilter(logging.Filter):
    """Stores the running unit's context on the record as record.unit."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "unit"):
            record.unit = current_unit()
        return True


def configure_gen_logging(verbose: bool = False, quiet: bool = False, stream=None) -> None:
    """
    Configure the subgraph.gen logger hierarchy.

    Levels:
        --verbose / -v  -> DEBUG   (every file read and written)
        (default)       -> INFO    (migrations, generated files, watch events)
        --quiet / -q    -> WARNING (warnings and errors only)

    Calling it again only changes the level of the installed handler.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root_logger = logging.getLogger(_LOGGER_NAME)
    root_logger.setLevel(level)

    if root_logger.handlers:
        for handler in root_logger.handlers:
            handler.setLevel(level)
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.addFilter(UnitContextFilter())
    handler.setFormatter(_GenFormatter())
    root_logger.addHandler(handler)

    root_logger.propagate = False


class _GenFormatter(logging.Formatter):
    """Message as-is (callers already prefix tags), led by the unit context when there is one."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        unit = getattr(record, "unit", None)
        return f"{unit}: {message}" if unit else message
