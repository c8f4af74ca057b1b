from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_BATCH_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODEL,
    DEFAULT_QC_FALLBACK_SCORE,
)


class ModelConfig(BaseModel):
    """Settings for the completion service."""

    name: str = DEFAULT_MODEL
    temperature: Optional[float] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: Optional[float] = 120.0


class QualityConfig(BaseModel):
    """Quality-control loop settings."""

    fallback_score: int = Field(default=DEFAULT_QC_FALLBACK_SCORE, ge=0, le=100)
    repair_policy: Literal["always_take_repair", "keep_better"] = "always_take_repair"


class BatchConfig(BaseModel):
    """Batch generation settings."""

    concurrency: int = Field(default=DEFAULT_BATCH_CONCURRENCY, ge=1)


class FactoryConfig(BaseModel):
    """Top-level configuration model."""

    model: ModelConfig = ModelConfig()
    quality: QualityConfig = QualityConfig()
    batch: BatchConfig = BatchConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> FactoryConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PROGRAMFACTORY_CONFIG
            env variable or 'programfactory.yaml' in the current directory.
    """

    config_path = path or os.getenv("PROGRAMFACTORY_CONFIG", "programfactory.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FactoryConfig(**data)
    else:
        config = FactoryConfig()

    env_db_url = os.getenv("PROGRAMFACTORY_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_model = os.getenv("PROGRAMFACTORY_MODEL")
    if env_model:
        config.model.name = env_model
    return config
