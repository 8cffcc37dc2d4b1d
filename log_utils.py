import logging

from config import LOG_LEVEL

CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
ENGINE_LOGGERS = ("assumptions", "simulation", "audit", "jobs", "scenarios")


def _resolve_level(level) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or LOG_LEVEL or "INFO").strip().upper()
    resolved = logging.getLevelName(candidate)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level=None) -> int:
    """
    Attach one console handler to each engine logger. Safe to call repeatedly
    (streamlit reruns the script on every interaction): an existing handler is
    reused and only its level is updated. Returns the resolved level.
    """
    resolved = _resolve_level(level)
    for name in ENGINE_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(resolved)
        handler = next((h for h in logger.handlers if getattr(h, "_engine_console", False)), None)
        if handler is None:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
            handler._engine_console = True
            logger.addHandler(handler)
        handler.setLevel(resolved)
    return resolved
