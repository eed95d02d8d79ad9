from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from fixplanner.config.settings import settings
from fixplanner.models.benchmark import Benchmark
from fixplanner.models.errors import ConfigurationError, InvalidArgumentError


class FixConfig(BaseModel):
    """The content of ``fixconf.yaml``."""

    default_plan_name: Optional[str] = None
    default_benchmark: Optional[str] = None
    benchmarks: list[Benchmark] = Field(default_factory=list)
    fixes: list[dict[str, Any]] = Field(default_factory=list)
    ignore: list[str] = Field(default_factory=list)
    fix_service_url: Optional[str] = None

    @field_validator("benchmarks", mode="before")
    @classmethod
    def _benchmarks(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("'benchmarks' must be a list")
        try:
            return [b if isinstance(b, Benchmark) else Benchmark.from_dict(b) for b in v]
        except InvalidArgumentError as e:
            raise ValueError(str(e)) from e

    @field_validator("fixes", "ignore", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return [] if v is None else v


def load_fix_config(fixdir) -> FixConfig:
    """Reads ``fixconf.yaml`` from ``fixdir``; a missing file gives the defaults."""
    path = Path(fixdir) / settings.CONFIG_FILE_NAME
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.debug(f"No {path}, using default configuration")
        return FixConfig()
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot be read: {e}", str(path)) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"must be a map, got '{type(raw).__name__}'", str(path))
    try:
        config = FixConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}", str(path)) from e
    logger.info(f"Loaded {path}: {len(config.benchmarks)} benchmark(s), {len(config.fixes)} fix(es)")
    return config
