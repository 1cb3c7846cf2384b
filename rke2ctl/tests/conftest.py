import pytest

from rke2ctl.config import ActivationSettings, PathSettings, PreflightSettings, Settings, set_settings
from rke2ctl.modules.rke2 import host as rke2_host
from rke2ctl.modules.rke2.host import Host
from rke2ctl.modules.rke2.utils import CommandResult

INSTALL_SCRIPT = "#!/bin/sh\necho installing rke2\n"


class FakeSystem:
    """Stand-in for systemctl, pgrep, rke2, swapon and the vendor installer."""

    def __init__(self):
        self.calls = []
        self.executables = {"systemctl", "curl"}
        self.active_checks = []   # consumed first, then `active` is used
        self.active = False
        self.registered = True
        self.etcd_running = True
        self.version_output = "rke2 version v1.28.3+rke2r1 (abcdef0)\ngo version go1.20.10\n"
        self.swap = ""
        self.failures = {}
        self.installer_runs = []
        self.installer_exit = 0

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.executables else None

    def systemctl(self, verb):
        return [c for c in self.calls if c[0] == "systemctl" and c[1] == verb]

    def _is_active(self):
        if self.active_checks:
            return self.active_checks.pop(0)
        return self.active

    def __call__(self, args, input=None, env=None, capture=True, timeout=None):
        args = [str(a) for a in args]
        self.calls.append(args)

        if tuple(args[:2]) in self.failures:
            return CommandResult(args, self.failures[tuple(args[:2])], "", "boom")

        if args[0] == "systemctl":
            verb = args[1]
            if verb == "is-active":
                active = self._is_active()
                return CommandResult(args, 0 if active else 3, "active\n" if active else "inactive\n")
            if verb == "list-unit-files":
                if self.registered:
                    return CommandResult(args, 0, f"{args[2]} enabled enabled\n")
                return CommandResult(args, 1, "")
            if verb == "is-enabled":
                return CommandResult(args, 0, "enabled\n")
            if verb == "status":
                return CommandResult(args, 0, f"● {args[2]}.service - Rancher Kubernetes\n   Active: active (running)\n")
            if verb == "show":
                return CommandResult(args, 0, f"/usr/lib/systemd/system/{args[2]}.service\n")
            return CommandResult(args, 0)

        if args[0] == "pgrep":
            return CommandResult(args, 0 if self.etcd_running else 1)
        if args[:2] == ["rke2", "--version"]:
            return CommandResult(args, 0, self.version_output)
        if args[0] == "swapon":
            return CommandResult(args, 0, self.swap)
        if args[0] == "sh":
            self.installer_runs.append((input, env))
            return CommandResult(args, self.installer_exit)
        return CommandResult(args, 0)


class SleepRecorder:
    def __init__(self):
        self.waits = []

    def __call__(self, seconds):
        self.waits.append(seconds)


@pytest.fixture
def host_root(tmp_path):
    root = tmp_path / "host"
    root.mkdir()
    return root


@pytest.fixture
def settings(host_root):
    settings = Settings(
        paths=PathSettings(root=host_root),
        activation=ActivationSettings(
            first_start_wait=120, start_wait=30, retry_delay=15,
            etcd_poll_attempts=5, etcd_poll_interval=2,
        ),
        preflight=PreflightSettings(min_disk_mb=0, min_memory_mb=0),
    )
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def system():
    return FakeSystem()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def fetched():
    return []


@pytest.fixture
def install_script():
    return INSTALL_SCRIPT


@pytest.fixture
def host(settings, system, sleeps, fetched):
    def fetch(url, timeout):
        fetched.append(url)
        return INSTALL_SCRIPT

    return Host(
        settings=settings,
        runner=system,
        sleep=sleeps,
        which=system.which,
        euid=lambda: 0,
        machine=lambda: "x86_64",
        fetch=fetch,
    )


@pytest.fixture
def use_host(monkeypatch, host):
    """Make the CLI commands act on the fake host."""
    monkeypatch.setattr(rke2_host, "current_host", lambda: host)
    return host


@pytest.fixture
def install_unit(settings):
    """Create the systemd unit file for a role under the fake host root."""
    def _install(role):
        unit = settings.paths.unit_file(f"rke2-{role}")
        unit.parent.mkdir(parents=True, exist_ok=True)
        unit.write_text(f"[Unit]\nDescription=Rancher Kubernetes ({role})\n")
        return unit
    return _install
