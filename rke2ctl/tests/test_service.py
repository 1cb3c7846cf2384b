import logging

import pytest

from rke2ctl.errors import CommandError, ServiceStartError
from rke2ctl.modules.rke2.models import ActivationState, NodeRole, ServiceState
from rke2ctl.modules.rke2.service import ServiceActivator, SystemdUnit, enable_and_start

A = ActivationState


def test_agent_becomes_active_on_second_attempt(host, system, sleeps):
    system.active_checks = [False]
    system.active = True

    result = enable_and_start(NodeRole.AGENT, host)

    assert result.state is A.ACTIVE
    assert result.attempts == 2
    assert result.transitions == [A.DISABLED, A.ENABLING, A.STARTING, A.STARTING, A.ACTIVE]
    assert result.datastore_ready is None
    assert sleeps.waits == [120, 15, 30]
    assert len(system.systemctl("enable")) == 1
    assert len(system.systemctl("restart")) == 2


def test_service_that_never_starts_fails_after_three_attempts(host, system, sleeps):
    activator = ServiceActivator(SystemdUnit(NodeRole.AGENT, host))

    with pytest.raises(ServiceStartError) as exc_info:
        activator.activate()

    assert "rke2-agent failed to start after 3 attempts" in str(exc_info.value)
    assert "journalctl -u rke2-agent -e" in str(exc_info.value)
    assert activator.state is A.FAILED
    assert activator.transitions[-1] is A.FAILED
    assert len(system.systemctl("restart")) == 3
    assert sleeps.waits == [120, 15, 30, 15, 30]


def test_enable_failure_is_fatal_and_nothing_is_started(host, system):
    system.failures[("systemctl", "enable")] = 1

    with pytest.raises(CommandError, match="Enable rke2-server failed"):
        enable_and_start(NodeRole.SERVER, host)
    assert system.systemctl("restart") == []


def test_restart_failure_is_fatal(host, system, sleeps):
    system.failures[("systemctl", "restart")] = 1

    with pytest.raises(CommandError, match="Restart rke2-agent failed"):
        enable_and_start(NodeRole.AGENT, host)
    assert sleeps.waits == []


def test_server_waits_for_etcd_process(host, system, sleeps):
    system.active = True

    result = enable_and_start(NodeRole.SERVER, host)

    assert result.state is A.ACTIVE
    assert result.datastore_ready is True
    assert ["pgrep", "-f", "etcd --config-file"] in system.calls
    assert sleeps.waits == [120]


def test_missing_etcd_process_only_warns(host, system, sleeps, caplog):
    system.active = True
    system.etcd_running = False

    with caplog.at_level(logging.WARNING):
        result = enable_and_start(NodeRole.SERVER, host)

    assert result.state is A.ACTIVE
    assert result.datastore_ready is False
    assert sleeps.waits == [120] + [2] * 5
    assert "etcd process not detected" in caplog.text


def test_process_probe_is_injectable(host, system):
    system.active = True
    patterns = []

    def probe(pattern):
        patterns.append(pattern)
        return len(patterns) == 3

    result = ServiceActivator(SystemdUnit(NodeRole.SERVER, host), process_probe=probe).activate()

    assert result.datastore_ready is True
    assert patterns == ["etcd --config-file"] * 3


def test_unit_state_follows_unit_file_and_systemd(host, system, install_unit):
    unit = SystemdUnit(NodeRole.SERVER, host)
    assert unit.state() is ServiceState.NOT_INSTALLED

    install_unit("server")
    assert unit.state() is ServiceState.INSTALLED_INACTIVE

    system.active = True
    assert unit.state() is ServiceState.INSTALLED_ACTIVE
    assert unit.fragment_path() == "/usr/lib/systemd/system/rke2-server.service"
