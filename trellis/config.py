from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VARS,
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOG_LEVEL,
)

ConcurrencyPolicy = Literal["none", "lock", "optimistic"]


class ConcurrencyConfig(BaseModel):
    """How concurrent resumes of one workflow instance are handled.

    ``none`` applies no mutual exclusion, ``lock`` serializes resumes of an
    instance within one manager, ``optimistic`` rejects saves of an instance
    whose stored version changed since it was loaded.
    """

    policy: ConcurrencyPolicy = "none"


class TrellisConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL
    concurrency: ConcurrencyConfig = ConcurrencyConfig()


def database_url_from_env() -> Optional[str]:
    for name in DATABASE_URL_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None


def load_config(path: Optional[str] = None) -> TrellisConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TRELLIS_CONFIG env
            variable or 'trellis.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = TrellisConfig(**data)
    else:
        config = TrellisConfig()

    env_db_url = database_url_from_env()
    if env_db_url:
        config.database_url = env_db_url
    return config
