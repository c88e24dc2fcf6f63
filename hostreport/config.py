import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from hostreport.errors import ConfigError

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Targets
    hosts: List[str] = Field(
        default_factory=lambda: ["localhost"],
        description="Hosts to probe, in report order. 'localhost' probes this machine.",
    )
    services: List[str] = Field(
        default_factory=list,
        description="Service names checked on every host, in report order",
    )

    # Disk thresholds (free space in percent)
    warn_pct: float = Field(
        default=15.0,
        ge=0.0,
        le=100.0,
        description="Disks with less free space than this are flagged 'warn'",
    )
    crit_pct: float = Field(
        default=5.0,
        ge=0.0,
        le=100.0,
        description="Disks with less free space than this are flagged 'crit'",
    )

    # Output
    report_title: str = Field(default="Host Health Report")
    output_dir: Path = Field(
        default=Path("reports"),
        description="Directory receiving the CSV/JSON/HTML reports",
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional run log; lines are appended",
    )

    # Timeouts and concurrency
    ping_timeout_seconds: int = Field(default=1, ge=1)
    command_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for every OS/disk/service query",
    )
    host_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for probing one host; expiry marks the host as failed",
    )
    max_workers: int = Field(default=8, ge=1, description="Hosts probed in parallel")

    @field_validator("hosts")
    @classmethod
    def _check_host_names(cls, hosts: List[str]) -> List[str]:
        # Host names end up as ssh/ping arguments; a leading "-" would be an option
        checked = []
        for host in hosts:
            name = host.strip()
            if not name:
                raise ValueError("host names must not be empty")
            if name.startswith("-"):
                raise ValueError(f"invalid host name {host!r}: must not start with '-'")
            checked.append(name)
        return checked

    @model_validator(mode="after")
    def _check_threshold_order(self) -> "Settings":
        if self.crit_pct >= self.warn_pct:
            logger.warning(
                "crit_pct (%s) is not below warn_pct (%s); no disk will be flagged 'warn'",
                self.crit_pct,
                self.warn_pct,
            )
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        values: Dict[str, Any] = {}

        raw_hosts = os.getenv("HOSTREPORT_HOSTS", "")
        hosts = [h.strip() for h in raw_hosts.split(",") if h.strip()]
        if hosts:
            values["hosts"] = hosts

        raw_services = os.getenv("HOSTREPORT_SERVICES", "")
        services = [s.strip() for s in raw_services.split(",") if s.strip()]
        if services:
            values["services"] = services

        env_map = {
            "warn_pct": "HOSTREPORT_WARN_PCT",
            "crit_pct": "HOSTREPORT_CRIT_PCT",
            "report_title": "HOSTREPORT_TITLE",
            "output_dir": "HOSTREPORT_OUTPUT_DIR",
            "log_file": "HOSTREPORT_LOG_FILE",
        }
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = raw

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in environment: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """
        Load settings from a YAML file.

        Relative output_dir/log_file entries are resolved against the directory
        of the configuration file. Raises ConfigError if the file is missing,
        unparsable or does not validate.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                content = yaml.safe_load(handle)
        except FileNotFoundError as exc:
            raise ConfigError(f"Configuration file not found: {path}") from exc
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to load {path}: {exc}") from exc

        if content is None:
            content = {}
        if not isinstance(content, dict):
            raise ConfigError(
                f"Failed to load {path}: expected a mapping at the top level, "
                f"got {type(content).__name__}"
            )

        for key in ("output_dir", "log_file"):
            value = content.get(key)
            if value and not Path(value).is_absolute():
                content[key] = path.parent / value

        try:
            return cls(**content)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings the same way for every entry point.

    An explicit config_path wins, then the file named by HOSTREPORT_CONFIG,
    then the HOSTREPORT_* environment variables.
    """
    if config_path is None and os.getenv("HOSTREPORT_CONFIG"):
        config_path = Path(os.environ["HOSTREPORT_CONFIG"])
    if config_path is not None:
        return Settings.from_yaml(config_path)
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
