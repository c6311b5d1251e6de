"""User configuration, stored as JSON."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from procwarden.paths import config_path, ensure_app_dirs

log = logging.getLogger(__name__)


class WardenConfig(BaseModel):
    poll_interval: float = Field(default=1.0, ge=0.1)
    log_capacity: int | None = Field(default=1000, ge=1)
    kill_timeout: float = Field(default=3.0, gt=0)
    persist_state: bool = True
    gpu_sampling: bool = True


class ConfigStore:
    """Loads and saves :class:`WardenConfig`; a bad file is reset to defaults."""

    def __init__(self, path: Path | None = None) -> None:
        if path is None:
            ensure_app_dirs()
            path = config_path()
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> WardenConfig:
        if not self._path.exists():
            cfg = WardenConfig()
            self.save(cfg)
            return cfg

        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
            return WardenConfig.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            log.warning("Invalid config at %s (%s); using defaults", self._path, exc)
            cfg = WardenConfig()
            self.save(cfg)
            return cfg

    def save(self, cfg: WardenConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")
