"""
Logging setup for tools whose stdout is reserved for JSON results.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from visionkit.runtime.session import suppress_runtime_logs

NOISY_LOGGERS = ("urllib3", "PIL")

# onnxruntime native severities, indexed by Python logging level
_RUNTIME_SEVERITY = {
    logging.DEBUG: 1,
    logging.INFO: 2,
    logging.WARNING: 3,
    logging.ERROR: 3,
    logging.CRITICAL: 4,
}


def configure_logging(level: int | str = logging.WARNING) -> None:
    """Route all log records to stderr and quiet chatty dependencies."""
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level {name!r}")

    logging.basicConfig(
        level=level,
        format="%(name)s - %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    suppress_runtime_logs(_RUNTIME_SEVERITY.get(level, 3))
