import stat

import pytest
import yaml
from jsonschema import validate

from rke2ctl.errors import ConfigWriteError, NotFoundError, ValidationError
from rke2ctl.modules.rke2.configure import (
    ConfigDocument,
    materialize_config,
    resolve_token,
    validate_request,
)
from rke2ctl.modules.rke2.models import InstallRequest, NodeRole

AGENT_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "token": {"type": "string"},
        "server": {"type": "string", "pattern": "^https://"},
        "write-kubeconfig-mode": {"type": "string", "pattern": "^0[0-7]{3}$"},
    },
    "required": ["token", "server", "write-kubeconfig-mode"],
    "additionalProperties": False,
}


def agent_request(**overrides):
    values = dict(role=NodeRole.AGENT, server_url="https://h:9345", token="abc")
    values.update(overrides)
    return InstallRequest(**values)


def test_inline_token_wins_over_token_file(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("from-file\n")
    assert resolve_token("inline", token_file) == "inline"


def test_token_file_is_read_and_stripped(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("K10abc::server:def\n")
    assert resolve_token(None, token_file) == "K10abc::server:def"


def test_missing_token_file_is_not_found(tmp_path):
    with pytest.raises(NotFoundError, match="non-existent"):
        resolve_token(None, tmp_path / "nope")


def test_no_token_resolves_to_none():
    assert resolve_token() is None


def test_agent_document_serializes_quoted_and_ordered():
    document = ConfigDocument.from_request(agent_request(), "abc", "0644")
    assert document.dump() == (
        'token: "abc"\n'
        'server: "https://h:9345"\n'
        'write-kubeconfig-mode: "0644"\n'
    )
    validate(instance=yaml.safe_load(document.dump()), schema=AGENT_CONFIG_SCHEMA)


def test_server_document_with_cluster_init():
    request = InstallRequest(role=NodeRole.SERVER, cluster_init=True, server_url="https://ignored:9345")
    document = ConfigDocument.from_request(request, None, "0644")
    assert document.as_dict() == {"cluster-init": True, "write-kubeconfig-mode": "0644"}
    assert "server" not in document
    assert "cluster-init: true\n" in document.dump()


def test_agent_without_token_fails_validation():
    with pytest.raises(ValidationError, match="--token"):
        validate_request(agent_request(token=None), None)


def test_agent_without_server_url_fails_validation():
    with pytest.raises(ValidationError, match="--server-url"):
        validate_request(agent_request(server_url=None), "abc")


def test_agent_with_explicit_config_does_not_need_server_url(tmp_path):
    source = tmp_path / "config.yaml"
    source.write_text('server: "https://h:9345"\n')
    validate_request(agent_request(server_url=None, config_path=source), "abc")


def test_missing_explicit_config_is_not_found(tmp_path):
    request = InstallRequest(role=NodeRole.SERVER, config_path=tmp_path / "missing.yaml")
    with pytest.raises(NotFoundError, match="missing.yaml"):
        validate_request(request, None)


def test_generator_writes_minimal_config(host, settings):
    result = materialize_config(agent_request(), host, "abc")

    assert result.action == "generated"
    target = settings.paths.config_path
    assert target.read_text() == (
        'token: "abc"\n'
        'server: "https://h:9345"\n'
        'write-kubeconfig-mode: "0644"\n'
    )
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_generator_is_idempotent(host, settings):
    materialize_config(agent_request(), host, "abc")
    first = settings.paths.config_path.read_bytes()

    result = materialize_config(agent_request(), host, "abc")

    assert result.action == "skipped"
    assert settings.paths.config_path.read_bytes() == first


def test_generator_never_clobbers_hand_edits(host, settings, caplog):
    target = settings.paths.config_path
    target.parent.mkdir(parents=True)
    target.write_text("# tuned by hand\ntoken: other\n")

    result = materialize_config(agent_request(), host, "abc")

    assert result.action == "skipped"
    assert target.read_text() == "# tuned by hand\ntoken: other\n"
    assert "not overwriting" in caplog.text


def test_explicit_config_always_overwrites(host, settings, tmp_path):
    target = settings.paths.config_path
    target.parent.mkdir(parents=True)
    target.write_text("token: old\n")
    source = tmp_path / "supplied.yaml"
    source.write_text("token: new\nnode-label:\n  - zone=a\n")

    result = materialize_config(InstallRequest(role=NodeRole.SERVER, config_path=source), host, None)

    assert result.action == "copied"
    assert target.read_text() == source.read_text()


def test_supplied_canonical_config_is_left_in_place(host, settings):
    target = settings.paths.config_path
    target.parent.mkdir(parents=True)
    target.write_text("token: keep\n")

    result = materialize_config(InstallRequest(role=NodeRole.SERVER, config_path=target), host, None)

    assert result.action == "skipped"
    assert target.read_text() == "token: keep\n"


def test_copy_failure_is_reported_as_config_error(host, settings, tmp_path):
    blocker = settings.paths.resolve(settings.paths.config_dir)
    blocker.parent.mkdir(parents=True)
    blocker.write_text("not a directory\n")
    source = tmp_path / "supplied.yaml"
    source.write_text("token: new\n")

    with pytest.raises(ConfigWriteError, match="Failed to copy"):
        materialize_config(InstallRequest(role=NodeRole.SERVER, config_path=source), host, None)


def test_write_failure_is_reported_as_config_error(host, settings):
    blocker = settings.paths.resolve(settings.paths.config_dir)
    blocker.parent.mkdir(parents=True)
    blocker.write_text("not a directory\n")

    with pytest.raises(ConfigWriteError, match="Failed to write"):
        materialize_config(agent_request(), host, "abc")
