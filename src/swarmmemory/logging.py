"""Logging for swarm-memory.

Library code only logs through ``get_logger``; nothing is printed until a
host calls ``setup_logging``. The CLI does so once per run, mapping each
``-v`` to one step down from WARNING. Output goes to the configured file
(``logging.file`` or SWARM_LOG) or else to stderr.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from swarmmemory.config.schema import LoggingConfig

ROOT_LOGGER = "swarmmemory"

_FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_STREAM_FORMAT = "%(levelname)s %(name)s: %(message)s"

_handler: logging.Handler | None = None


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for ``config``.

    A verbosity count wins over a level name: 0 is WARNING, 1 is INFO and
    anything higher is DEBUG. Unknown names fall back to WARNING.
    """
    if config is None:
        return logging.WARNING
    if config.verbose is not None:
        if config.verbose <= 0:
            return logging.WARNING
        return logging.INFO if config.verbose == 1 else logging.DEBUG
    if config.level:
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return logging.WARNING


def setup_logging(config: LoggingConfig | None = None) -> logging.Handler:
    """Attach the single swarm-memory handler; later calls return the same one."""
    global _handler
    if _handler is not None:
        return _handler

    level = resolve_level(config)
    target = config.file if config and config.file else os.environ.get("SWARM_LOG")

    handler: logging.Handler | None = None
    if target:
        try:
            handler = logging.FileHandler(os.path.expanduser(target), encoding="utf-8")
            handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        except OSError as e:
            get_logger().warning("Cannot open log file %s: %s", target, e)
    if handler is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_STREAM_FORMAT))

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.addHandler(handler)
    _handler = handler
    return handler


def reset_logging() -> None:
    """Detach the handler installed by setup_logging()."""
    global _handler
    root = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        root.removeHandler(_handler)
        _handler.close()
        _handler = None
    root.setLevel(logging.NOTSET)


def get_logger(name: str | None = None) -> logging.Logger:
    """Package logger, or its ``swarmmemory.<name>`` child."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)
