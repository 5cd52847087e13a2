import logging
import logging.handlers
import os
from typing import List, Optional

_LOGGER_NAME = "mandeldeep"
# Loggers whose records are routed through the mandeldeep handlers.
_ROUTED = ("py.warnings",)
# numba logs every compilation pass at DEBUG.
_NUMBA_LEVEL = logging.WARNING

def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)

def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s.%(msecs)03dZ %(threadName)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

def _build_handlers(level: int, console: bool, log_file: Optional[str],
                    rotate_bytes: int, rotate_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        parent = os.path.dirname(log_file)
        if parent:
            os.makedirs(parent, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"
        ))
    fmt = _build_formatter()
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(fmt)
    return handlers

def _replace_handlers(logger: logging.Logger, handlers: List[logging.Handler], *, close: bool) -> None:
    for h in list(logger.handlers):
        logger.removeHandler(h)
        if close:
            h.close()
    for h in handlers:
        logger.addHandler(h)

def configure_root_logging(
    *,
    level: int = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = "mandeldeep.log",
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 5,
    capture_warnings: bool = True,
) -> logging.Logger:
    """Configure the ``mandeldeep`` logger; numpy/numba warnings share its handlers."""
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    handlers = _build_handlers(level, console, log_file, rotate_bytes, rotate_count)
    _replace_handlers(logger, handlers, close=True)

    logging.captureWarnings(capture_warnings)
    for name in _ROUTED:
        routed = logging.getLogger(name)
        routed.propagate = False
        _replace_handlers(routed, handlers if capture_warnings else [], close=False)
    logging.getLogger("numba").setLevel(max(level, _NUMBA_LEVEL))
    return logger
