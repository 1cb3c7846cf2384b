"""Install workflow for a single RKE2 node.

Order matters: every read-only validation runs before the first mutation
(swap handling, config write, vendor installer, service activation).
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .configure import MaterializeResult, materialize_config, resolve_token, validate_request
from .host import Host
from .installer import install_rke2
from .models import ActivationResult, InstallRequest, NodeRole
from .preflight import HostFacts, check_prerequisites, disable_swap, is_swap_on, validate_host
from .service import enable_and_start

logger = logging.getLogger("rke2.core")


@dataclass
class InstallReport:
    """Summary of an install run."""
    role: NodeRole
    warnings: List[str] = field(default_factory=list)
    config: Optional[MaterializeResult] = None
    installed: bool = False
    activation: Optional[ActivationResult] = None


class RKE2NodeInstaller:
    """Drives preflight, configuration, installation and activation."""

    def __init__(self, host: Host):
        self.host = host

    def install(self, request: InstallRequest, facts: Optional[HostFacts] = None) -> InstallReport:
        """Install and start RKE2 for ``request.role``.

        Raises:
            RKE2Error: any validation, install or activation failure
        """
        host = self.host
        validate_host(host, facts)

        report = InstallReport(role=request.role)
        token = resolve_token(request.token, request.token_file)
        validate_request(request, token)

        report.warnings.extend(check_prerequisites(request.role, host))

        if request.auto_swapoff:
            disable_swap(host)
        elif is_swap_on(host):
            warning = "Swap is active. Recommended: --auto-swapoff or disable manually."
            logger.warning(f"⚠️  {warning}")
            report.warnings.append(warning)

        report.config = materialize_config(request, host, token)
        report.installed = install_rke2(request, host)
        report.activation = enable_and_start(request.role, host)
        return report
