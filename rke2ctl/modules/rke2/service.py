"""RKE2 service management.

This module wraps the systemctl calls for one RKE2 unit and drives the
activation state machine:

    DISABLED -> ENABLING -> STARTING -> ACTIVE
                              |
                              +------> FAILED (after max_attempts)

The sleep function and the datastore process probe are injectable so the
retry policy can be exercised without real waits.
"""

import logging
from typing import Callable, List, Optional

from ...config import ActivationSettings
from ...errors import CommandError, ServiceStartError
from .host import Host
from .models import ActivationResult, ActivationState, NodeRole, ServiceState, StepPolicy, StepResult
from .utils import CommandResult, check_step, step_from_command

logger = logging.getLogger("rke2.service")


class SystemdUnit:
    """systemctl operations for the unit belonging to a role."""

    def __init__(self, role: NodeRole, host: Host):
        self.role = role
        self.host = host
        self.name = role.service_name

    def _systemctl(self, *args: str) -> CommandResult:
        return self.host.run(['systemctl', *args])

    @property
    def unit_file(self):
        return self.host.paths.unit_file(self.name)

    def is_installed(self) -> bool:
        return self.unit_file.is_file()

    def enable(self) -> CommandResult:
        return self._systemctl('enable', self.name)

    def disable(self) -> CommandResult:
        return self._systemctl('disable', self.name)

    def stop(self) -> CommandResult:
        return self._systemctl('stop', self.name)

    def restart(self) -> CommandResult:
        return self._systemctl('restart', self.name)

    def is_active(self) -> bool:
        return self._systemctl('is-active', '--quiet', self.name).ok

    def active_state(self) -> str:
        return self._systemctl('is-active', self.name).stdout.strip() or 'Unknown'

    def enabled_state(self) -> str:
        return self._systemctl('is-enabled', self.name).stdout.strip() or 'Unknown'

    def is_registered(self) -> bool:
        """True if systemd knows the unit file."""
        result = self._systemctl('list-unit-files', f'{self.name}.service', '--no-legend')
        return result.ok and self.name in result.stdout

    def status_text(self) -> str:
        result = self._systemctl('status', self.name, '--no-pager', '-l')
        return (result.stdout or result.stderr).rstrip()

    def fragment_path(self) -> str:
        result = self._systemctl('show', self.name, '--property=FragmentPath', '--value')
        return result.stdout.strip() or 'Unknown'

    def state(self) -> ServiceState:
        if not self.is_installed():
            return ServiceState.NOT_INSTALLED
        if self.is_active():
            return ServiceState.INSTALLED_ACTIVE
        return ServiceState.INSTALLED_INACTIVE


def pgrep_probe(host: Host, pattern: str) -> bool:
    return host.run(['pgrep', '-f', pattern]).ok


class ServiceActivator:
    """Enable a unit and restart it until systemd reports it active."""

    def __init__(
        self,
        unit: SystemdUnit,
        settings: Optional[ActivationSettings] = None,
        sleep: Optional[Callable[[float], None]] = None,
        process_probe: Optional[Callable[[str], bool]] = None,
    ):
        self.unit = unit
        self.settings = settings or unit.host.settings.activation
        self.sleep = sleep or unit.host.sleep
        self.process_probe = process_probe or (lambda pattern: pgrep_probe(unit.host, pattern))
        self.state = ActivationState.DISABLED
        self.transitions: List[ActivationState] = [self.state]

    def _transition(self, state: ActivationState) -> None:
        logger.debug(f"{self.unit.name}: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def _result(self, attempts: int, datastore_ready: Optional[bool] = None) -> ActivationResult:
        return ActivationResult(
            service_name=self.unit.name,
            state=self.state,
            attempts=attempts,
            transitions=list(self.transitions),
            datastore_ready=datastore_ready,
        )

    def activate(self) -> ActivationResult:
        """Run the state machine to ACTIVE.

        Raises:
            CommandError: enabling or restarting the unit failed
            ServiceStartError: the unit never became active
        """
        name = self.unit.name
        max_attempts = self.settings.max_attempts

        self._transition(ActivationState.ENABLING)
        check_step(step_from_command(f"Enable {name}", StepPolicy.FATAL, self.unit.enable()), CommandError)

        for attempt in range(1, max_attempts + 1):
            self._transition(ActivationState.STARTING)
            logger.info(f"Starting {name} service (attempt {attempt}/{max_attempts})...")
            check_step(step_from_command(f"Restart {name}", StepPolicy.FATAL, self.unit.restart()), CommandError)

            if attempt == 1:
                logger.info(
                    f"Waiting up to {self.settings.first_start_wait:g}s for first startup (etcd initialization)..."
                )
                self.sleep(self.settings.first_start_wait)
            else:
                logger.info(f"Waiting {self.settings.start_wait:g}s for service to start...")
                self.sleep(self.settings.start_wait)

            if self.unit.is_active():
                self._transition(ActivationState.ACTIVE)
                logger.info(f"✅ Service {name} is running successfully.")
                datastore_ready = None
                if self.unit.role is NodeRole.SERVER:
                    datastore_ready = self.wait_for_datastore()
                return self._result(attempt, datastore_ready)

            logger.warning(f"⚠️  Service {name} failed to start on attempt {attempt}")
            if attempt < max_attempts:
                logger.info(f"Retrying in {self.settings.retry_delay:g}s...")
                self.sleep(self.settings.retry_delay)

        self._transition(ActivationState.FAILED)
        raise ServiceStartError(name, max_attempts)

    def wait_for_datastore(self) -> bool:
        """Poll for the etcd process; advisory, never fails activation."""
        logger.info("Waiting for etcd to be ready...")
        pattern = self.settings.etcd_process_pattern
        for _ in range(self.settings.etcd_poll_attempts):
            if self.process_probe(pattern):
                logger.info("etcd process is running.")
                return True
            self.sleep(self.settings.etcd_poll_interval)

        check_step(StepResult(
            name="etcd readiness probe",
            policy=StepPolicy.ADVISORY,
            ok=False,
            detail="etcd process not detected, but service is active",
        ))
        return False


def enable_and_start(role: NodeRole, host: Host) -> ActivationResult:
    return ServiceActivator(SystemdUnit(role, host)).activate()
