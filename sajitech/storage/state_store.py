from __future__ import annotations

import glob
import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from sajitech.config import AppConfig
from sajitech.errors import StaleDocument, StorageError
from sajitech.models.state import SCHEMA_VERSION, AppState

logger = logging.getLogger(__name__)

LEGACY_INVOICE_PREFIX = "SJ"


def migrate_legacy(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Anciens documents : compteur de factures à plat dans settings
    (next_invoice_index / current_year) => sequences["SJ"].
    """
    settings = raw.get("settings")
    if not isinstance(settings, dict):
        return raw
    sequences = settings.setdefault("sequences", {})
    if not isinstance(sequences, dict):
        sequences = settings["sequences"] = {}
    index = settings.pop("next_invoice_index", None)
    year = settings.pop("current_year", None)
    if index is not None and year is not None and LEGACY_INVOICE_PREFIX not in sequences:
        sequences[LEGACY_INVOICE_PREFIX] = {"year": int(year), "next_index": int(index)}
    raw["schema_version"] = SCHEMA_VERSION
    return raw


class LocalStateStore:
    """
    Document JSON unique pour tout l'état applicatif.
    - Rotation de backups (backup_enabled, backup_keep)
    - N'écrit pas si le contenu ne change pas
    - Écriture atomique (fichier temporaire + replace)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self._lock = threading.Lock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))

    @classmethod
    def from_config(cls, config: AppConfig) -> "LocalStateStore":
        return cls(config.state_path, backup_enabled=config.backup_enabled, backup_keep=config.backup_keep)

    # ---------------- I/O bas niveau ---------------- #

    def _read_raw(self) -> Optional[Dict[str, Any]]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else None
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            self._quarantine()
            return None

    def _quarantine(self) -> None:
        # Fichier corrompu → copie à côté, on repart d'un document vide
        backup = self.filepath.with_suffix(".corrupt.json")
        logger.warning("State file %s is unreadable, copied to %s", self.filepath, backup)
        try:
            shutil.copy2(self.filepath, backup)
        except OSError as e:
            logger.warning("Could not copy corrupt state file: %s", e)

    def _rotate_backups(self) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        pattern = str(self.filepath.with_suffix(".*.bak.json"))
        files = sorted(glob.glob(pattern))
        # garde les plus récents
        for old in files[: max(0, len(files) - self.backup_keep)]:
            Path(old).unlink(missing_ok=True)

    def _backup_current(self) -> None:
        ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        shutil.copy2(self.filepath, self.filepath.with_suffix(f".{ts}.bak.json"))
        self._rotate_backups()

    @staticmethod
    def _dump(payload: Dict[str, Any]) -> str:
        return json.dumps(payload, ensure_ascii=False, indent=2)

    def _write_atomic(self, text: str) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.filepath.name, suffix=".tmp", dir=str(self.filepath.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self.filepath)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ---------------- API ---------------- #

    def load(self) -> AppState:
        """Ne lève jamais : fichier absent ou illisible => document initial."""
        raw = self._read_raw()
        if raw is None:
            return AppState.initial()
        try:
            return AppState.model_validate(migrate_legacy(raw))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("State file %s does not match the schema (%s)", self.filepath, e)
            self._quarantine()
            return AppState.initial()

    def disk_revision(self) -> int:
        raw = self._read_raw() if self.filepath.exists() else None
        if not raw:
            return 0
        try:
            return int(raw.get("revision", 0))
        except (TypeError, ValueError):
            return 0

    def save(self, state: AppState, expected_revision: Optional[int] = None) -> bool:
        """
        Réécrit le document entier. Retourne False si rien n'a changé.
        expected_revision : refuse d'écraser un document modifié entre-temps.
        """
        with self._lock:
            if expected_revision is not None:
                found = self.disk_revision()
                if found != expected_revision:
                    raise StaleDocument(expected_revision, found)

            current: Optional[str] = None
            if self.filepath.exists():
                try:
                    current = self.filepath.read_text(encoding="utf-8")
                except OSError:
                    current = None

            # comparaison hors révision, qui change à chaque écriture
            payload = state.model_dump(mode="json")
            if current is not None:
                payload["revision"] = state.revision
                if current == self._dump(payload):
                    return False

            payload["revision"] = state.revision + 1
            try:
                if self.backup_enabled and current is not None:
                    self._backup_current()
                self._write_atomic(self._dump(payload))
            except OSError as e:
                raise StorageError(f"cannot write {self.filepath}: {e}") from e

            state.revision += 1
            logger.debug("State saved to %s (revision %d)", self.filepath, state.revision)
            return True
