from __future__ import annotations

import json

from click.testing import CliRunner

from kashtici import cli as cli_mod
from kashtici.cli import cli


def _write(tmp_path, event):
    path = tmp_path / "event.json"
    path.write_text(json.dumps(event), encoding="utf-8")
    return str(path)


TAG_PUSH = {
    "type": "push",
    "payload": json.dumps({"ref": "refs/tags/v1.2.0"}),
    "buildID": "b-7",
    "revision": {"commit": "0123456789abcdef", "ref": "refs/tags/v1.2.0"},
}


def test_route_prints_plan(tmp_path):
    result = CliRunner().invoke(cli, ["route", _write(tmp_path, TAG_PUSH)])

    assert result.exit_code == 0, result.output
    assert "Stage 1:" in result.output
    assert "notify-pending" in result.output
    assert "kashti-release-latest" in result.output
    assert "tag=v1.2.0" in result.output
    assert "Finally: notify-success" in result.output


def test_route_json(tmp_path):
    result = CliRunner().invoke(cli, ["route", "--json", _write(tmp_path, TAG_PUSH)])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [[j["name"] for j in s] for s in data["stages"]] == [
        ["notify-pending"],
        ["kashti-release", "kashti-release-latest"],
    ]
    assert data["terminal"] == "StatusNotifier"


def test_route_malformed_exits_2(tmp_path):
    event = {"type": "push", "payload": "{oops"}
    result = CliRunner().invoke(cli, ["route", _write(tmp_path, event)])
    assert result.exit_code == 2


def test_run_dry_run_success(tmp_path):
    result = CliRunner().invoke(cli, ["run", "--dry-run", _write(tmp_path, TAG_PUSH)])

    assert result.exit_code == 0, result.output
    assert "RUN STARTED" in result.output
    assert "NOTIFY: notify-success (state=success)" in result.output
    assert "kashti-release: SUCCESS" in result.output


def test_run_non_release_push_does_nothing(tmp_path):
    event = dict(TAG_PUSH, payload=json.dumps({"ref": "refs/heads/feature-x"}))
    result = CliRunner().invoke(cli, ["run", "--dry-run", _write(tmp_path, event)])

    assert result.exit_code == 0
    assert "skipping" in result.output
    assert "RUN STARTED" not in result.output


def test_trigger_manual_uses_local_git(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_mod, "head_sha", lambda cwd=None: "feedface00")
    monkeypatch.setattr(cli_mod, "current_ref", lambda cwd=None: "refs/heads/dev")

    result = CliRunner().invoke(cli, ["trigger", "manual", "--dry-run", "--workspace", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "kashti-test: SUCCESS" in result.output
    assert "kashti-e2e: SUCCESS" in result.output


def test_trigger_without_git_fails(tmp_path, monkeypatch):
    def no_git(cwd=None):
        raise FileNotFoundError("git")

    monkeypatch.setattr(cli_mod, "head_sha", no_git)
    result = CliRunner().invoke(cli, ["trigger", "push", "--dry-run", "--workspace", str(tmp_path)])
    assert result.exit_code == 1


def test_empty_repo_setting_is_a_configuration_error(tmp_path, monkeypatch):
    monkeypatch.setenv("KASHTI_REPO", "")
    for command in (["route"], ["run", "--dry-run"]):
        result = CliRunner().invoke(cli, [*command, _write(tmp_path, TAG_PUSH)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert "RUN STARTED" not in result.output
