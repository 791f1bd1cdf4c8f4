from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from sajitech.config import AppConfig
from sajitech.models.common import utcnow
from sajitech.models.state import AppState
from sajitech.storage.state_store import migrate_legacy

logger = logging.getLogger(__name__)


class CloudBackup:
    """
    Sauvegarde distante best-effort : un document par utilisateur dans une
    table PostgREST (user_id, data_blob, updated_at).
    Un seul essai par appel, avec timeout. push/pull ne lèvent jamais.
    """

    def __init__(self, url: str, key: str, *, table: str = "backups", timeout: float = 10.0,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_config(cls, config: AppConfig, session: Optional[requests.Session] = None) -> Optional["CloudBackup"]:
        if not config.remote_configured:
            return None
        return cls(config.backup_url, config.backup_key, table=config.backup_table,
                   timeout=config.backup_timeout, session=session)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    # ---------------- HTTP ---------------- #

    def upsert(self, owner_id: str, blob: Dict[str, Any], updated_at: Optional[datetime] = None) -> None:
        row = {"user_id": owner_id, "data_blob": blob, "updated_at": (updated_at or utcnow()).isoformat()}
        resp = self.session.post(
            self.endpoint,
            params={"on_conflict": "user_id"},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            timeout=self.timeout,
        )
        resp.raise_for_status()

    def fetch(self, owner_id: str) -> Optional[Dict[str, Any]]:
        resp = self.session.get(
            self.endpoint,
            params={"user_id": f"eq.{owner_id}", "select": "data_blob"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        rows = resp.json()
        # aucune ligne pour cet utilisateur : pas une erreur
        if not isinstance(rows, list) or not rows:
            return None
        blob = rows[0].get("data_blob") if isinstance(rows[0], dict) else None
        return blob if isinstance(blob, dict) else None

    # ---------------- API ---------------- #

    def push(self, state: AppState, owner_id: str) -> bool:
        try:
            self.upsert(owner_id, state.model_dump(mode="json"))
        except requests.exceptions.RequestException as e:
            logger.warning("Backup push for %s failed: %s", owner_id, e)
            return False
        logger.info("Backup pushed for %s (revision %d)", owner_id, state.revision)
        return True

    def pull(self, owner_id: str) -> Optional[AppState]:
        try:
            blob = self.fetch(owner_id)
        except requests.exceptions.RequestException as e:
            logger.warning("Backup pull for %s failed: %s", owner_id, e)
            return None
        except ValueError as e:
            logger.warning("Backup pull for %s returned an invalid body: %s", owner_id, e)
            return None
        if blob is None:
            logger.info("No remote backup for %s", owner_id)
            return None
        try:
            state = AppState.model_validate(migrate_legacy(blob))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Remote backup for %s does not match the schema: %s", owner_id, e)
            return None
        logger.info("Backup pulled for %s", owner_id)
        return state
