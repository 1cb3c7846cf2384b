"""RKE2 node status and information reports.

Reports are gathered into plain dicts and rendered through the Jinja2
templates shipped in ``templates/``.
"""
import logging
import os
import platform
import socket
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .host import Host
from .installer import installed_version
from .models import NodeRole, UninstallPlan
from .service import SystemdUnit
from .utils import directory_size, human_size, read_os_release

logger = logging.getLogger("rke2.health")

API_SERVER_URL = "https://localhost:6443"
SUPERVISOR_PORT = 9345
DEFAULT_CNI = "Canal (Flannel + Calico)"


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


_environment = Environment(
    loader=FileSystemLoader(get_template_path()),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def render_report(template_name: str, **context: Any) -> str:
    return _environment.get_template(template_name).render(**context)


def _file_info(path: Path) -> Optional[Dict[str, Any]]:
    if not path.is_file():
        return None
    stat = path.stat()
    return {
        'path': str(path),
        'size': stat.st_size,
        'modified': datetime.fromtimestamp(stat.st_mtime).isoformat(sep=' ', timespec='seconds'),
    }


def gather_status(role: NodeRole, host: Host) -> Dict[str, Any]:
    """Service status, version and config locations for ``status``."""
    unit = SystemdUnit(role, host)
    status: Dict[str, Any] = {
        'role': role.value,
        'service': unit.name,
        'installed': unit.is_installed(),
        'status_text': '',
        'version_text': None,
        'config': _file_info(host.paths.config_path),
        'config_file': host.paths.config_file,
        'kubeconfig': _file_info(host.paths.kubeconfig_path) if role is NodeRole.SERVER else None,
    }
    if not status['installed']:
        return status

    status['status_text'] = unit.status_text()
    if host.command_exists('rke2'):
        result = host.run(['rke2', '--version'])
        status['version_text'] = result.stdout.strip() if result.ok else "Could not determine version"
    return status


def gather_info(role: NodeRole, host: Host) -> Dict[str, Any]:
    """System, installation, service, config and data directory facts for ``info``."""
    paths = host.paths
    unit = SystemdUnit(role, host)
    os_release = read_os_release(paths.resolve(paths.os_release))

    binary = host.which('rke2')
    info: Dict[str, Any] = {
        'role': role.value,
        'system': {
            'os': os_release.get('PRETTY_NAME', 'Unknown'),
            'arch': host.machine(),
            'kernel': platform.release(),
            'hostname': socket.gethostname(),
        },
        'binary': {
            'installed': binary is not None,
            'version': (installed_version(host) or 'Unknown') if binary else None,
            'path': binary,
        },
        'service': {
            'name': unit.name,
            'registered': unit.is_registered(),
        },
        'config': _file_info(paths.config_path),
        'data_dirs': [],
        'network': {
            'api_server': API_SERVER_URL if role is NodeRole.SERVER else None,
            'supervisor_port': SUPERVISOR_PORT if role is NodeRole.SERVER else None,
            'cni': DEFAULT_CNI,
        },
        'log_files': [],
    }

    if info['service']['registered']:
        info['service'].update(
            enabled=unit.enabled_state(),
            active=unit.active_state(),
            fragment_path=unit.fragment_path(),
        )

    for data_dir in paths.data_dirs:
        resolved = paths.resolve(data_dir)
        size = human_size(directory_size(resolved)) if resolved.is_dir() else None
        info['data_dirs'].append({'path': data_dir, 'size': size})

    for log_file in paths.log_files:
        details = _file_info(paths.resolve(log_file))
        if details:
            info['log_files'].append({'path': log_file, 'size': details['size']})
    return info


def render_status(role: NodeRole, host: Host) -> Dict[str, Any]:
    status = gather_status(role, host)
    status['text'] = render_report('status.txt.j2', **status)
    return status


def render_info(role: NodeRole, host: Host) -> str:
    return render_report('info.txt.j2', **gather_info(role, host))


def render_dry_run(plan: UninstallPlan) -> str:
    return render_report('dry_run.txt.j2', plan=plan)
