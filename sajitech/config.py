from __future__ import annotations

import json
import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from sajitech.models.support import TicketPriority, UserRole

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = ROOT_DIR / "data"
STATE_FILE_NAME = "sajitech_db.json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


# ---------- Règles métier paramétrables ---------- #

class SequencePrefixes(BaseModel):
    invoice: str = "SJ"
    purchase: str = "BA"
    mission: str = "MS"
    ticket: str = "TCK"


class ScoringConfig(BaseModel):
    """Seuils heuristiques (aucune dérivation formelle, à ajuster)."""
    vip_threshold: float = 1000.0
    gold_threshold: float = 400.0
    reactivation_days: int = 180
    recency_days: int = 30
    recency_bonus: float = 50.0
    revenue_divisor: float = 100.0
    order_weight: float = 10.0

    default_driver_score: int = 70
    trip_weight: float = 0.4
    fuel_weight: float = 0.3
    km_weight: float = 0.3
    reference_consumption: float = 8.0  # L/100km
    fallback_consumption: float = 10.0


class ReportThresholds(BaseModel):
    """Seuils des alertes du rapport de direction."""
    max_cost_per_km: float = 15.0
    min_resolution_rate: float = 50.0  # %
    revenue_target: float = 50000.0


class BusinessRules(BaseModel):
    prefixes: SequencePrefixes = Field(default_factory=SequencePrefixes)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    report: ReportThresholds = Field(default_factory=ReportThresholds)
    default_tva: float = 20.0
    sla_hours: Dict[TicketPriority, int] = Field(default_factory=lambda: {
        TicketPriority.CRITICAL: 2,
        TicketPriority.HIGH: 8,
        TicketPriority.MEDIUM: 48,
        TicketPriority.LOW: 48,
    })
    # remise max autorisée en caisse, en % du brut de ligne
    discount_limits: Dict[UserRole, float] = Field(default_factory=lambda: {
        UserRole.ADMIN: 100.0,
        UserRole.MANAGER: 25.0,
        UserRole.VENDEUR: 10.0,
        UserRole.TECHNICIEN: 0.0,
        UserRole.CHAUFFEUR: 0.0,
    })
    notifications_cap: int = 500
    audit_cap: int = 1000


# ---------- Configuration d'exécution ---------- #

class AppConfig(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    state_file: Optional[Path] = None
    backup_enabled: bool = True
    backup_keep: int = 5

    backup_url: Optional[str] = None
    backup_key: Optional[str] = None
    backup_table: str = "backups"
    backup_timeout: float = 10.0

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    rules: BusinessRules = Field(default_factory=BusinessRules)

    @property
    def state_path(self) -> Path:
        return Path(self.state_file) if self.state_file else Path(self.data_dir) / STATE_FILE_NAME

    @property
    def remote_configured(self) -> bool:
        return bool(self.backup_url and self.backup_key)


def _load_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


_ENV_KEYS = {
    "SAJITECH_DATA_DIR": "data_dir",
    "SAJITECH_STATE_FILE": "state_file",
    "SAJITECH_BACKUP_URL": "backup_url",
    "SAJITECH_BACKUP_KEY": "backup_key",
    "SAJITECH_BACKUP_TABLE": "backup_table",
    "SAJITECH_BACKUP_TIMEOUT": "backup_timeout",
    "SAJITECH_LOG_LEVEL": "log_level",
    "SAJITECH_LOG_FILE": "log_file",
}


def load_config(settings_path: Optional[str | Path] = None, env: Optional[Dict[str, str]] = None) -> AppConfig:
    """
    Ordre de priorité croissant :
    - valeurs par défaut
    - settings.json (sections storage / backup / logging / rules)
    - variables d'environnement SAJITECH_*
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    path = Path(settings_path) if settings_path else DEFAULT_DATA_DIR / "settings.json"
    s = _load_json(path) or {}
    if isinstance(s, dict):
        storage = s.get("storage") if isinstance(s.get("storage"), dict) else {}
        backup = s.get("backup") if isinstance(s.get("backup"), dict) else {}
        log_conf = s.get("logging") if isinstance(s.get("logging"), dict) else {}
        for k in ("data_dir", "state_file", "backup_enabled", "backup_keep"):
            if storage.get(k) is not None:
                values[k] = storage[k]
        for k in ("url", "key", "table", "timeout"):
            if backup.get(k) is not None:
                values[f"backup_{k}"] = backup[k]
        for k in ("level", "file"):
            if log_conf.get(k) is not None:
                values[f"log_{k}"] = log_conf[k]
        if isinstance(s.get("rules"), dict):
            values["rules"] = s["rules"]

    for env_key, field in _ENV_KEYS.items():
        val = env.get(env_key)
        if val:
            values[field] = val

    return AppConfig.model_validate(values)


def logging_config(config: AppConfig) -> Dict[str, Any]:
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": config.log_level,
        },
    }
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "filename": str(config.log_file),
            "maxBytes": 1024 * 1024 * 5,  # 5 MB
            "backupCount": 5,
            "level": logging.INFO,
            "encoding": "utf-8",
        }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": handlers,
        "loggers": {
            "sajitech": {"handlers": list(handlers), "level": config.log_level, "propagate": False},
        },
    }


def configure_logging(config: AppConfig) -> None:
    logging.config.dictConfig(logging_config(config))
