import dataclasses

import pytest
import requests

from rke2ctl.errors import InstallError
from rke2ctl.modules.rke2 import installer
from rke2ctl.modules.rke2.installer import (
    fetch_install_script,
    install_rke2,
    installed_version,
    installer_environment,
    needs_install,
)
from rke2ctl.modules.rke2.models import InstallRequest, NodeRole


def test_installed_version_parses_first_line(host, system):
    system.executables.add("rke2")
    assert installed_version(host) == "v1.28.3+rke2r1"


def test_installed_version_is_none_without_binary(host, system):
    assert installed_version(host) is None
    assert ["rke2", "--version"] not in system.calls


def test_installer_environment_selects_channel_role_and_version():
    request = InstallRequest(role=NodeRole.AGENT, channel="latest", version="v1.29.0+rke2r1")
    assert installer_environment(request) == {
        "INSTALL_RKE2_CHANNEL": "latest",
        "INSTALL_RKE2_TYPE": "agent",
        "INSTALL_RKE2_VERSION": "v1.29.0+rke2r1",
    }
    assert "INSTALL_RKE2_VERSION" not in installer_environment(InstallRequest(role=NodeRole.SERVER))


@pytest.mark.parametrize("force, version, expected", [
    (False, None, False),
    (True, None, True),
    (False, "v1.29.0+rke2r1", True),
])
def test_existing_install_is_kept_unless_forced(force, version, expected):
    request = InstallRequest(role=NodeRole.SERVER, force=force, version=version)
    assert needs_install(request, "v1.28.3+rke2r1") is expected
    assert needs_install(request, None) is True


def test_install_skipped_when_already_installed(host, system, fetched):
    system.executables.add("rke2")
    assert install_rke2(InstallRequest(role=NodeRole.SERVER), host) is False
    assert fetched == []
    assert system.installer_runs == []


def test_install_pipes_script_to_sh_with_selectors(host, system, fetched, install_script):
    request = InstallRequest(role=NodeRole.AGENT, channel="stable")

    assert install_rke2(request, host) is True

    assert fetched == ["https://get.rke2.io"]
    assert len(system.installer_runs) == 1
    script, env = system.installer_runs[0]
    assert script == install_script
    assert env["INSTALL_RKE2_CHANNEL"] == "stable"
    assert env["INSTALL_RKE2_TYPE"] == "agent"
    assert "INSTALL_RKE2_VERSION" not in env


def test_install_script_failure_is_fatal(host, system):
    system.installer_exit = 1
    with pytest.raises(InstallError, match="exit status 1"):
        install_rke2(InstallRequest(role=NodeRole.SERVER), host)


def test_download_failure_is_fatal(host, system, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(installer.requests, "get", refuse)
    offline = dataclasses.replace(host, fetch=None)

    with pytest.raises(InstallError, match="Failed to download"):
        install_rke2(InstallRequest(role=NodeRole.SERVER), offline)
    assert system.installer_runs == []


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Server Error")

    def iter_content(self, chunk_size=1, decode_unicode=False):
        yield self.body


def test_fetch_install_script_returns_text(monkeypatch):
    monkeypatch.setattr(installer.requests, "get", lambda url, **kw: FakeResponse(b"#!/bin/sh\n"))
    assert fetch_install_script("https://get.rke2.io") == "#!/bin/sh\n"


def test_fetch_install_script_rejects_http_errors(monkeypatch):
    monkeypatch.setattr(installer.requests, "get", lambda url, **kw: FakeResponse(b"", status=503))
    with pytest.raises(InstallError, match="503"):
        fetch_install_script("https://get.rke2.io")


def test_fetch_install_script_rejects_empty_body(monkeypatch):
    monkeypatch.setattr(installer.requests, "get", lambda url, **kw: FakeResponse(b"  \n"))
    with pytest.raises(InstallError, match="empty"):
        fetch_install_script("https://get.rke2.io")
