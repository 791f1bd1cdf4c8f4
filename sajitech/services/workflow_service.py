from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sajitech.config import AppConfig, load_config
from sajitech.models.state import AppState
from sajitech.storage.cloud_backup import CloudBackup
from sajitech.storage.state_store import LocalStateStore

logger = logging.getLogger(__name__)


class Workspace:
    """
    Point d'entrée applicatif : config + document local + sauvegarde distante.
    Un seul écrivain ; chaque opération charge, modifie puis enregistre.
    """

    def __init__(self, config: Optional[AppConfig] = None, *, store: Optional[LocalStateStore] = None,
                 backup: Optional[CloudBackup] = None):
        self.config = config or load_config()
        self.rules = self.config.rules
        self.store = store or LocalStateStore.from_config(self.config)
        self.backup = backup if backup is not None else CloudBackup.from_config(self.config)
        self.state: AppState = self.store.load()

    def reload(self) -> AppState:
        self.state = self.store.load()
        return self.state

    @contextmanager
    def transaction(self) -> Iterator[AppState]:
        """
        with ws.transaction() as state:
            InvoiceService(state, ws.rules).validate(inv)
        Rien n'est écrit si le bloc lève : l'état en mémoire est rechargé.
        """
        state = self.reload()
        revision = state.revision
        try:
            yield state
        except Exception:
            self.reload()
            raise
        self.store.save(state, expected_revision=revision)

    # ---------- Sauvegarde distante (action explicite uniquement) ---------- #

    def push_backup(self, owner_id: str) -> bool:
        if self.backup is None:
            logger.warning("Remote backup is not configured")
            return False
        return self.backup.push(self.state, owner_id)

    def pull_backup(self, owner_id: str) -> bool:
        """Remplace le document local par la sauvegarde distante."""
        if self.backup is None:
            logger.warning("Remote backup is not configured")
            return False
        remote = self.backup.pull(owner_id)
        if remote is None:
            return False
        remote.revision = self.state.revision
        self.store.save(remote)
        self.state = remote
        return True
