"""
Configuration for chatlink.

Values are resolved in order: field defaults, the optional JSON file
``config/session.json`` under PROJECT_DIR, then ``CHATLINK_*`` environment
variables.
"""

import json
import os
import platform
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

from chatlink.session.artifacts import default_auth_dir

PROJECT_DIR = Path(os.getenv("CHATLINK_PROJECT_DIR", Path.cwd()))
CONFIG_FILE = PROJECT_DIR / "config" / "session.json"

ENV_PREFIX = "CHATLINK_"


class SessionConfig(BaseModel):
    """Settings for the session manager, client construction and server."""

    # Session
    session_key: str = "default"
    auth_dir: str = Field(default_factory=lambda: default_auth_dir(platform.system()))

    # Client construction
    client_driver: Optional[str] = None
    headless: bool = True
    browser_path: Optional[str] = None

    # Restart policy
    backoff_initial_ms: int = Field(default=2000, gt=0)
    backoff_cap_ms: int = Field(default=60000, gt=0)
    max_attempts: int = Field(default=0, ge=0)  # 0 = retry forever
    exit_timeout_seconds: float = Field(default=15.0, ge=0)
    remove_retries: int = Field(default=3, ge=1)
    remove_retry_delay_seconds: float = Field(default=0.5, ge=0)
    restart_on_error: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 5005
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "SessionConfig":
        if self.backoff_cap_ms < self.backoff_initial_ms:
            raise ValueError(
                f"backoff_cap_ms ({self.backoff_cap_ms}) must not be below "
                f"backoff_initial_ms ({self.backoff_initial_ms})"
            )
        return self

    @classmethod
    def load(
        cls,
        config_file: Optional[Path] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "SessionConfig":
        """Build a config from the JSON file and the environment."""
        values: Dict[str, Any] = {}

        path = config_file if config_file is not None else CONFIG_FILE
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                values.update(json.load(f))

        env = os.environ if environ is None else environ
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw

        return cls(**values)

    def reload(self, config_file: Optional[Path] = None) -> None:
        """Re-read file and environment, updating this instance in place."""
        fresh = self.load(config_file)
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))


CONFIG = SessionConfig.load()
