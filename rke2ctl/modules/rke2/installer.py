"""Delegation to the vendor RKE2 install script.

The script is fetched from the vendor endpoint and piped to ``sh -`` with the
INSTALL_RKE2_* selectors in its environment. A non-zero exit is fatal.
"""
import logging
import os
from typing import Dict, Optional

import requests

from ...errors import InstallError
from .host import Host
from .models import InstallRequest

logger = logging.getLogger("rke2.installer")


def installed_version(host: Host) -> Optional[str]:
    """Version reported by ``rke2 --version``, or None when not installed.

    The first line looks like ``rke2 version v1.28.3+rke2r1 (abcdef0)``.
    """
    if not host.command_exists('rke2'):
        return None
    result = host.run(['rke2', '--version'])
    if not result.ok or not result.stdout.strip():
        return None
    fields = result.stdout.splitlines()[0].split()
    return fields[2] if len(fields) >= 3 else None


def installer_environment(request: InstallRequest) -> Dict[str, str]:
    """INSTALL_RKE2_* variables understood by the vendor script."""
    env = {
        'INSTALL_RKE2_CHANNEL': request.channel,
        'INSTALL_RKE2_TYPE': request.role.value,
    }
    if request.version:
        env['INSTALL_RKE2_VERSION'] = request.version
    return env


def fetch_install_script(url: str, timeout: int = 60) -> str:
    """Download the vendor install script.

    Raises:
        InstallError: on any HTTP or connection failure
    """
    logger.debug(f"Fetching install script from {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            chunks = [chunk for chunk in response.iter_content(chunk_size=8192, decode_unicode=False) if chunk]
    except requests.RequestException as e:
        raise InstallError(f"Failed to download install script from {url}: {e}") from e

    script = b''.join(chunks).decode('utf-8')
    if not script.strip():
        raise InstallError(f"Install script downloaded from {url} is empty")
    return script


def needs_install(request: InstallRequest, current_version: Optional[str]) -> bool:
    """An existing install is kept unless --force or --version was given."""
    return not (current_version and not request.force and not request.version)


def install_rke2(request: InstallRequest, host: Host) -> bool:
    """Make sure RKE2 is installed for the requested channel/version.

    Returns:
        True if the vendor installer ran, False if installation was skipped.

    Raises:
        InstallError: download failed or the installer exited non-zero
    """
    current_version = installed_version(host)
    if not needs_install(request, current_version):
        logger.info(f"RKE2 already installed (version: {current_version}). Use --force or --version to update.")
        return False

    settings = host.settings.installer
    logger.info(
        f"Installing RKE2 (channel={request.channel} version={request.version or 'n/a'} "
        f"role={request.role.value})..."
    )

    fetch = host.fetch or fetch_install_script
    script = fetch(settings.install_url, settings.request_timeout)

    env = dict(os.environ)
    env.update(installer_environment(request))
    result = host.run(['sh', '-'], input=script, env=env, capture=False)
    if not result.ok:
        raise InstallError(f"RKE2 install script failed with exit status {result.returncode}")

    logger.info("✅ RKE2 install script completed")
    return True
