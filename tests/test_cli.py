import json

from typer.testing import CliRunner

from sajitech.cli import app
from sajitech.storage.state_store import LocalStateStore

runner = CliRunner()


def _settings(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"storage": {"data_dir": str(tmp_path / "data")}}), encoding="utf-8")
    return str(path)


def test_init_then_summary(tmp_path, monkeypatch):
    monkeypatch.delenv("SAJITECH_DATA_DIR", raising=False)
    settings = _settings(tmp_path)

    result = runner.invoke(app, ["--settings", settings, "init"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "data" / "sajitech_db.json").exists()

    again = runner.invoke(app, ["--settings", settings, "init"])
    assert again.exit_code == 1

    summary = runner.invoke(app, ["--settings", settings, "summary"])
    assert summary.exit_code == 0, summary.output
    assert "clients" in summary.output
    assert "Executive report" in summary.output


def test_pulse_saves_notifications(tmp_path, monkeypatch, state):
    monkeypatch.delenv("SAJITECH_DATA_DIR", raising=False)
    settings = _settings(tmp_path)
    LocalStateStore(tmp_path / "data" / "sajitech_db.json").save(state)

    result = runner.invoke(app, ["--settings", settings, "pulse"])
    assert result.exit_code == 0, result.output
    saved = LocalStateStore(tmp_path / "data" / "sajitech_db.json").load()
    assert [n.related_entity_id for n in saved.notifications] == ["PRD-2"]


def test_backup_push_without_remote_fails(tmp_path, monkeypatch):
    for key in ("SAJITECH_BACKUP_URL", "SAJITECH_BACKUP_KEY", "SAJITECH_DATA_DIR"):
        monkeypatch.delenv(key, raising=False)
    result = runner.invoke(app, ["--settings", _settings(tmp_path), "backup", "push", "owner-1"])
    assert result.exit_code == 1
