# src/nodelisting/services/settings.py
from __future__ import annotations
from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

DEFAULT_USER_AGENT = "SoundTime-Listing/1.0"


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path).expanduser()
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {p} must contain a mapping")
    # в yaml ключи пишем как в Settings (db_path, sweep_interval, ...)
    return {str(k).upper(): v for k, v in data.items()}


@dataclass(frozen=True, slots=True)
class Settings:
    base_dir: Path
    db_path: Path
    host: str = "0.0.0.0"
    port: int = 3333
    sweep_interval: float = 300.0
    sweep_initial_delay: float = 10.0
    sweep_concurrency: int = 16
    removal_hours: float = 48.0
    probe_timeout: float = 8.0
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"

    @staticmethod
    def from_sources(env_file: Optional[str] = ".env") -> "Settings":
        """
        Порядок источников: ENV > .env > yaml (LISTING_CONFIG) > значения по умолчанию.
        """
        env_file_vars = {k: v for k, v in (dotenv_values(env_file) if env_file else {}).items() if v is not None}

        def raw(key: str) -> Optional[str]:
            return os.environ.get(key) or env_file_vars.get(key)

        yaml_vars = _load_yaml(raw("LISTING_CONFIG"))

        def pick(key: str, yaml_key: str, default: Any) -> Any:
            value = raw(key)
            if value:
                return value
            if yaml_vars.get(yaml_key) is not None:
                return yaml_vars[yaml_key]
            return default

        base = Path(pick("LISTING_BASE_DIR", "BASE_DIR", Path.home() / ".nodelisting")).expanduser().resolve()
        db_path = Path(pick("LISTING_DB_PATH", "DB_PATH", base / "listing.db")).expanduser()
        # PORT: как в docker-образе; LISTING_PORT имеет приоритет
        port = raw("LISTING_PORT") or raw("PORT") or yaml_vars.get("PORT") or 3333

        return Settings(
            base_dir=base,
            db_path=db_path,
            host=str(pick("LISTING_HOST", "HOST", "0.0.0.0")),
            port=int(port),
            sweep_interval=float(pick("LISTING_SWEEP_INTERVAL", "SWEEP_INTERVAL", 300.0)),
            sweep_initial_delay=float(pick("LISTING_SWEEP_INITIAL_DELAY", "SWEEP_INITIAL_DELAY", 10.0)),
            sweep_concurrency=int(pick("LISTING_SWEEP_CONCURRENCY", "SWEEP_CONCURRENCY", 16)),
            removal_hours=float(pick("LISTING_REMOVAL_HOURS", "REMOVAL_HOURS", 48.0)),
            probe_timeout=float(pick("LISTING_PROBE_TIMEOUT", "PROBE_TIMEOUT", 8.0)),
            user_agent=str(pick("LISTING_USER_AGENT", "USER_AGENT", DEFAULT_USER_AGENT)),
            log_level=str(pick("LISTING_LOG_LEVEL", "LOG_LEVEL", "INFO")),
        )

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    def with_overrides(self, **kw) -> "Settings":
        allowed = {f.name for f in fields(self)}
        safe = {k: v for k, v in kw.items() if k in allowed and v is not None}
        if "base_dir" in safe:
            safe["base_dir"] = Path(safe["base_dir"]).expanduser().resolve()
            # db_path следует за base_dir, если его не переопределили явно
            if "db_path" not in safe and self.db_path == self.base_dir / "listing.db":
                safe["db_path"] = safe["base_dir"] / "listing.db"
        if "db_path" in safe:
            safe["db_path"] = Path(safe["db_path"]).expanduser()
        return replace(self, **safe)
