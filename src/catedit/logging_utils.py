from __future__ import annotations

from copy import deepcopy
from typing import Any

from rich.console import Console
from rich.text import Text
from uvicorn.config import LOGGING_CONFIG

_DEBUG_LOG = False
_CONSOLE = Console(stderr=True, highlight=False)


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_enabled() -> bool:
    return _DEBUG_LOG


def debug_log(message: str) -> None:
    if _DEBUG_LOG:
        _CONSOLE.print(Text.assemble(("[catedit debug] ", "dim"), message), soft_wrap=True)


def build_uvicorn_log_config(debug: bool = False) -> dict[str, Any]:
    """Return a uvicorn logging config whose default formatter names the service."""
    config = deepcopy(LOGGING_CONFIG)
    formatter = config.get("formatters", {}).get("default")
    if isinstance(formatter, dict):
        formatter["fmt"] = "%(levelprefix)s [catedit] %(message)s"
    loggers = config.get("loggers", {})
    for name in ("uvicorn", "uvicorn.error"):
        logger = loggers.get(name)
        if isinstance(logger, dict):
            logger["level"] = "DEBUG" if debug else "INFO"
    return config
