import json
import logging
from pathlib import Path

from sajitech.config import configure_logging, load_config, logging_config
from sajitech.models.support import TicketPriority


def test_defaults_when_no_settings(tmp_path):
    cfg = load_config(tmp_path / "missing.json", env={})
    assert cfg.backup_table == "backups"
    assert cfg.backup_timeout == 10.0
    assert cfg.remote_configured is False
    assert cfg.rules.prefixes.invoice == "SJ"
    assert cfg.rules.sla_hours[TicketPriority.CRITICAL] == 2
    assert cfg.state_path.name == "sajitech_db.json"


def test_settings_file_then_environment(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({
        "storage": {"data_dir": str(tmp_path / "data"), "backup_keep": 2},
        "backup": {"url": "https://a.supabase.co", "key": "from-file"},
        "logging": {"level": "DEBUG"},
        "rules": {"scoring": {"vip_threshold": 2000}},
    }), encoding="utf-8")

    cfg = load_config(settings, env={"SAJITECH_BACKUP_KEY": "from-env", "SAJITECH_BACKUP_TIMEOUT": "2.5"})
    assert cfg.data_dir == tmp_path / "data"
    assert cfg.state_path == tmp_path / "data" / "sajitech_db.json"
    assert cfg.backup_keep == 2
    assert cfg.backup_key == "from-env"
    assert cfg.backup_timeout == 2.5
    assert cfg.log_level == "DEBUG"
    assert cfg.rules.scoring.vip_threshold == 2000
    assert cfg.rules.scoring.gold_threshold == 400
    assert cfg.remote_configured is True


def test_unreadable_settings_are_ignored(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text("{oops", encoding="utf-8")
    assert load_config(settings, env={}).log_level == "INFO"


def test_logging_config_with_file(tmp_path):
    cfg = load_config(tmp_path / "none.json", env={"SAJITECH_LOG_FILE": str(tmp_path / "logs" / "app.log")})
    conf = logging_config(cfg)
    assert set(conf["handlers"]) == {"console", "file"}
    assert conf["handlers"]["file"]["maxBytes"] == 5 * 1024 * 1024
    assert Path(tmp_path / "logs").is_dir()

    configure_logging(cfg)
    logging.getLogger("sajitech.tests").info("hello")
    for h in logging.getLogger("sajitech").handlers:
        h.flush()
    assert "hello" in (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
