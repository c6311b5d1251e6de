"""
Logging setup for the procwarden agent.

Everything goes to a rotating file under the app data dir, and optionally to
the console. Kill decisions from the engine and enforcer are kept at INFO even
when the rest of the app is quieter, so the file always holds an audit trail.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from procwarden.paths import ensure_app_dirs, log_path

AUDIT_LOGGERS = ("procwarden.engine", "procwarden.scheduler")


def _has_file_handler(root: logging.Logger, path: Path) -> bool:
    return any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == path.resolve()
        for h in root.handlers
    )


def setup_logging(
    level: int = logging.INFO,
    console: bool = True,
    log_file: Path | None = None,
) -> None:
    if log_file is None:
        ensure_app_dirs()
        log_file = log_path()
    root = logging.getLogger()
    root.setLevel(level)

    for name in AUDIT_LOGGERS:
        logging.getLogger(name).setLevel(min(level, logging.INFO))

    # Safe to call twice: handlers are only added once per log file
    if _has_file_handler(root, log_file):
        return

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    if console:
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        root.addHandler(ch)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(str(log_file), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setFormatter(fmt)
    root.addHandler(fh)
