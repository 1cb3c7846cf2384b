"""Exception hierarchy for rke2ctl.

Every error an operator can hit is an ``RKE2Error``; the CLI turns it into a
one-line message and exit status 1.
"""


class RKE2Error(Exception):
    """Base class for all rke2ctl failures."""
    exit_code = 1


class PrivilegeError(RKE2Error):
    """The effective user is not root."""
    pass


class MissingDependencyError(RKE2Error):
    """A required OS tool (systemctl, curl) is not installed."""
    pass


class UnsupportedPlatformError(RKE2Error):
    """The CPU architecture is not supported by RKE2."""
    pass


class ValidationError(RKE2Error):
    """A required option or option combination is missing or invalid."""
    pass


class NotFoundError(RKE2Error):
    """A file referenced on the command line does not exist."""
    pass


class AmbiguousRoleError(RKE2Error):
    """Both server and agent units are installed and no role was given."""
    pass


class NotInstalledError(RKE2Error):
    """No RKE2 unit for the requested (or any) role is installed."""
    pass


class InstallError(RKE2Error):
    """Downloading or running the vendor install script failed."""
    pass


class ConfigWriteError(RKE2Error):
    """The node config.yaml could not be written."""
    pass


class BackupError(RKE2Error):
    """The pre-uninstall backup could not be created."""
    pass


class CommandError(RKE2Error):
    """A fatal external command returned a non-zero status."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class ServiceStartError(RKE2Error):
    """The service did not become active within the allowed attempts."""

    def __init__(self, service_name: str, attempts: int):
        super().__init__(
            f"Service {service_name} failed to start after {attempts} attempts. "
            f"Check: journalctl -u {service_name} -e"
        )
        self.service_name = service_name
        self.attempts = attempts
