"""Settings for rke2ctl.

Settings are loaded from multiple sources with the following precedence:
1. Environment variables (``RKE2CTL_<SECTION>__<FIELD>``)
2. Settings file (``RKE2CTL_CONFIG`` or the first of DEFAULT_SETTINGS_PATHS)
3. Default values
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, get_origin

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger("rke2.config")

ENV_PREFIX = "RKE2CTL_"
ENV_NESTED_DELIMITER = "__"

DEFAULT_SETTINGS_PATHS = [
    Path("/etc/rke2ctl/config.yaml"),
    Path("~/.config/rke2ctl/config.yaml"),
    Path("rke2ctl.yaml"),
]


class PathSettings(BaseModel):
    """Fixed host locations used by RKE2, relocatable under ``root``."""
    root: Path = Field(default=Path("/"), description="Prefix applied to every host path")
    config_dir: str = "/etc/rancher/rke2"
    config_file: str = "/etc/rancher/rke2/config.yaml"
    kubeconfig: str = "/etc/rancher/rke2/rke2.yaml"
    node_token: str = "/var/lib/rancher/rke2/server/node-token"
    unit_dir: str = "/usr/lib/systemd/system"
    script_dir: str = "/usr/local/bin"
    binary: str = "/usr/bin/rke2"
    data_dirs: List[str] = Field(
        default_factory=lambda: ["/var/lib/rancher/rke2", "/etc/rancher/rke2", "/opt/rke2"]
    )
    log_files: List[str] = Field(
        default_factory=lambda: ["/var/log/rke2.log", "/var/log/rke2-server.log", "/var/log/rke2-agent.log"]
    )
    fstab: str = "/etc/fstab"
    os_release: str = "/etc/os-release"
    backup_dir_pattern: str = Field(
        default="/tmp/rke2-backup-%Y%m%d-%H%M%S",
        description="strftime pattern for the default backup directory",
    )

    @field_validator("root", mode="before")
    @classmethod
    def expand_root(cls, v: Union[str, Path]) -> Path:
        """Expand the user home directory in the root prefix."""
        return Path(os.path.expanduser(str(v)))

    def resolve(self, path: str) -> Path:
        """Map an absolute host path beneath ``root``."""
        return self.root / path.lstrip("/")

    @property
    def config_path(self) -> Path:
        return self.resolve(self.config_file)

    @property
    def kubeconfig_path(self) -> Path:
        return self.resolve(self.kubeconfig)

    @property
    def node_token_path(self) -> Path:
        return self.resolve(self.node_token)

    @property
    def binary_path(self) -> Path:
        return self.resolve(self.binary)

    def unit_file(self, service_name: str) -> Path:
        return self.resolve(f"{self.unit_dir}/{service_name}.service")

    def script(self, name: str) -> Path:
        return self.resolve(f"{self.script_dir}/{name}")

    def default_backup_dir(self, now: Optional[datetime] = None) -> Path:
        return self.resolve((now or datetime.now()).strftime(self.backup_dir_pattern))


class InstallerSettings(BaseModel):
    """Vendor installer settings."""
    install_url: str = Field(default="https://get.rke2.io", description="Vendor install script URL")
    default_channel: str = "stable"
    kubeconfig_mode: str = Field(default="0644", description="write-kubeconfig-mode written to config.yaml")
    request_timeout: int = Field(default=60, description="HTTP timeout in seconds")


class ActivationSettings(BaseModel):
    """Service start retry policy."""
    max_attempts: int = 3
    first_start_wait: float = Field(default=120.0, description="Dwell before the first check (etcd init)")
    start_wait: float = Field(default=30.0, description="Dwell before later checks")
    retry_delay: float = Field(default=30.0, description="Flat backoff between failed attempts")
    etcd_poll_attempts: int = 30
    etcd_poll_interval: float = 2.0
    etcd_process_pattern: str = "etcd --config-file"


class PreflightSettings(BaseModel):
    """Host requirement checks."""
    supported_arches: List[str] = Field(
        default_factory=lambda: ["x86_64", "amd64", "aarch64", "arm64"]
    )
    known_os_ids: List[str] = Field(
        default_factory=lambda: ["ubuntu", "debian", "centos", "rhel", "rocky", "alma", "fedora", "amzn"]
    )
    min_disk_mb: int = 1024
    min_memory_mb: int = 512


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    file: Optional[str] = Field(default=None, description="Path to log file (if None, logs to stderr)")
    max_size_mb: int = 100
    backup_count: int = 5


class Settings(BaseModel):
    """rke2ctl settings."""
    model_config = ConfigDict(extra="ignore")

    paths: PathSettings = Field(default_factory=PathSettings)
    installer: InstallerSettings = Field(default_factory=InstallerSettings)
    activation: ActivationSettings = Field(default_factory=ActivationSettings)
    preflight: PreflightSettings = Field(default_factory=PreflightSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, settings_path: Optional[Union[str, Path]] = None) -> "Settings":
        """Load settings from file and environment variables."""
        settings_path = settings_path or os.getenv(f"{ENV_PREFIX}CONFIG")
        data: Dict[str, Any] = {}

        if settings_path:
            path = Path(settings_path).expanduser().absolute()
            if path.exists():
                data = cls._load_settings_file(path)
            else:
                logger.warning(f"Settings file not found: {path}")
        else:
            for path in DEFAULT_SETTINGS_PATHS:
                path = path.expanduser().absolute()
                if path.exists():
                    data = cls._load_settings_file(path)
                    break

        return cls(**cls._apply_env_overrides(data))

    @classmethod
    def _load_settings_file(cls, path: Path) -> Dict[str, Any]:
        """Load settings from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load settings from {path}: {e}")
            return {}
        logger.debug(f"Loaded settings from {path}")
        return data if isinstance(data, dict) else {}

    @classmethod
    def _apply_env_overrides(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        merged = {
            section: dict(values) if isinstance(values, dict) else values
            for section, values in data.items()
        }
        for section, section_field in cls.model_fields.items():
            section_model = section_field.annotation
            for name, field in section_model.model_fields.items():
                env_name = f"{ENV_PREFIX}{section}{ENV_NESTED_DELIMITER}{name}".upper()
                value = os.getenv(env_name)
                if value is None:
                    continue
                if get_origin(field.annotation) is list:
                    value = [item.strip() for item in value.split(",") if item.strip()]
                merged.setdefault(section, {})[name] = value
        return merged


# Global settings instance
_settings: Optional[Settings] = None


def get_settings(settings_path: Optional[Union[str, Path]] = None) -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load(settings_path)
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set (or with None, reset) the global settings instance."""
    global _settings
    _settings = settings
