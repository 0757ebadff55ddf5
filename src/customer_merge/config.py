"""Engine configuration with ``CUSTOMER_MERGE_*`` environment overrides.

Every knob has a default that reproduces the production batch job; the CLI
starts from :meth:`EngineConfig.from_env` and applies explicit flags on top.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from customer_merge.errors import InvalidConfigError

ENV_PREFIX = "CUSTOMER_MERGE_"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    batch_size: int = 100
    bulk_write_batch_size: int = 1000
    progress_log_interval: int = 10
    batch_delay_seconds: float = 1.0
    authoritative_pattern: str = r"^C\d{4}$"
    report_dir: Path = Path(".")
    country_prefix: str = "33"
    national_length: int = 9
    min_phone_match_length: int = 6

    def __post_init__(self) -> None:
        for name in ("batch_size", "bulk_write_batch_size", "progress_log_interval"):
            if getattr(self, name) <= 0:
                raise InvalidConfigError(name, f"{name} must be positive")
        if self.batch_delay_seconds < 0:
            raise InvalidConfigError("batch_delay_seconds", "batch_delay_seconds must not be negative")
        try:
            re.compile(self.authoritative_pattern)
        except re.error as exc:
            raise InvalidConfigError("authoritative_pattern", f"invalid regular expression: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for config_field in fields(cls):
            env_key = f"{ENV_PREFIX}{config_field.name.upper()}"
            raw = environ.get(env_key)
            if raw is None or not raw.strip():
                continue
            overrides[config_field.name] = _parse_env_value(env_key, raw.strip(), config_field.default)
        if overrides:
            logger.debug("Engine config overrides from environment: %s", sorted(overrides))
        return cls(**overrides)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse_env_value(env_key: str, value: str, default: Any) -> Any:
    if isinstance(default, Path):
        return Path(value)
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError as exc:
            raise InvalidConfigError(env_key, f"expected an integer, got {value!r}") from exc
    if isinstance(default, float):
        try:
            return float(value)
        except ValueError as exc:
            raise InvalidConfigError(env_key, f"expected a number, got {value!r}") from exc
    return value
