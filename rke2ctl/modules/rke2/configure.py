"""RKE2 config.yaml materialization.

The node configuration is either copied verbatim from an operator supplied
file (always overwriting) or generated from command line flags. The generator
never overwrites an existing config.yaml, so hand edits survive a re-run.
"""
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ...errors import ConfigWriteError, NotFoundError, ValidationError
from ...logging import redact_sensitive_data
from .host import Host
from .models import InstallRequest, NodeRole

logger = logging.getLogger("rke2.configure")

CONFIG_FILE_MODE = 0o600


class _Quoted(str):
    """String value emitted double-quoted."""


class ConfigDumper(yaml.SafeDumper):
    """SafeDumper that keeps double quotes on string values."""


ConfigDumper.add_representer(
    _Quoted,
    lambda dumper, value: dumper.represent_scalar('tag:yaml.org,2002:str', str(value), style='"'),
)


class ConfigDocument:
    """Key-ordered RKE2 configuration document.

    Keys serialize in insertion order and string values are always double
    quoted, so the same flags always produce the same bytes.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}

    def set(self, key: str, value: Any) -> 'ConfigDocument':
        if isinstance(value, str):
            value = _Quoted(value)
        self._entries[key] = value
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {k: str(v) if isinstance(v, _Quoted) else v for k, v in self._entries.items()}

    def dump(self) -> str:
        return yaml.dump(
            self._entries,
            Dumper=ConfigDumper,
            default_flow_style=False,
            sort_keys=False,
            width=4096,
        )

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @classmethod
    def from_request(cls, request: InstallRequest, token: Optional[str], kubeconfig_mode: str) -> 'ConfigDocument':
        """Minimal document for the requested role."""
        document = cls()
        if token:
            document.set('token', token)
        if request.role is NodeRole.AGENT:
            document.set('server', request.server_url)
        if request.role is NodeRole.SERVER and request.cluster_init:
            document.set('cluster-init', True)
        document.set('write-kubeconfig-mode', kubeconfig_mode)
        return document


@dataclass
class MaterializeResult:
    """What happened to the canonical config file."""
    path: Path
    action: str  # 'copied', 'generated' or 'skipped'


def resolve_token(token: Optional[str] = None, token_file: Optional[Path] = None) -> Optional[str]:
    """Resolve the cluster token; an inline value wins over a token file.

    Raises:
        NotFoundError: token_file was given (and needed) but does not exist
    """
    if token:
        return token
    if token_file:
        token_file = Path(token_file)
        if not token_file.is_file():
            raise NotFoundError(f"--token-file points to non-existent file: {token_file}")
        return token_file.read_text().strip() or None
    return None


def validate_request(request: InstallRequest, token: Optional[str]) -> None:
    """Check role specific option requirements before anything is written.

    Raises:
        ValidationError: agent without a token, or generated agent config without a server URL
        NotFoundError: explicit config file does not exist
    """
    if request.role is NodeRole.AGENT and not token:
        raise ValidationError("For agent role, --token or --token-file is required.")

    if request.config_path:
        if not Path(request.config_path).is_file():
            raise NotFoundError(f"Configuration file not found: {request.config_path}")
    elif request.role is NodeRole.AGENT and not request.server_url:
        raise ValidationError("For agent role, --server-url is required.")


def write_config_file(path: Path, content: str, mode: int = CONFIG_FILE_MODE) -> None:
    """Write content to path with the given mode.

    Raises:
        ConfigWriteError: the directory or file could not be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        os.chmod(path, mode)
    except OSError as e:
        raise ConfigWriteError(f"Failed to write {path}: {e}") from e


def copy_config_file(source: Path, target: Path) -> None:
    """Copy an operator supplied config over target.

    Raises:
        ConfigWriteError: the copy failed
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
    except OSError as e:
        raise ConfigWriteError(f"Failed to copy {source} to {target}: {e}") from e


def materialize_config(request: InstallRequest, host: Host, token: Optional[str]) -> MaterializeResult:
    """Put config.yaml in place for the installed service.

    Callers must run ``validate_request`` first.
    """
    paths = host.paths
    target = paths.config_path

    if request.config_path:
        source = Path(request.config_path)
        if target.exists() and source.resolve() == target.resolve():
            logger.info(f"{paths.config_file} is already the supplied config, nothing to copy.")
            return MaterializeResult(target, 'skipped')
        copy_config_file(source, target)
        logger.info(f"Copied config to {paths.config_file}")
        return MaterializeResult(target, 'copied')

    if target.exists():
        logger.warning(f"⚠️  File {paths.config_file} already exists - not overwriting.")
        return MaterializeResult(target, 'skipped')

    logger.info(f"Creating minimal {paths.config_file} based on flags.")
    document = ConfigDocument.from_request(request, token, host.settings.installer.kubeconfig_mode)
    logger.debug(f"Generated config: {redact_sensitive_data(document.as_dict())}")
    write_config_file(target, document.dump())
    return MaterializeResult(target, 'generated')
