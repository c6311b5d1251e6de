"""Locations of procwarden's config, state and log files."""

import os
from pathlib import Path

APP_NAME = "procwarden"


def app_data_dir() -> Path:
    override = os.environ.get("PROCWARDEN_HOME")
    if override:
        return Path(override)
    base = os.environ.get("APPDATA") or os.environ.get("XDG_DATA_HOME")
    return Path(base) / APP_NAME if base else Path.home() / f".{APP_NAME}"


def config_path() -> Path:
    return app_data_dir() / "config.json"


def state_path() -> Path:
    return app_data_dir() / "blacklist_data.json"


def logs_dir() -> Path:
    return app_data_dir() / "logs"


def log_path() -> Path:
    return logs_dir() / "procwarden.log"


def ensure_app_dirs() -> None:
    app_data_dir().mkdir(parents=True, exist_ok=True)
    logs_dir().mkdir(parents=True, exist_ok=True)
