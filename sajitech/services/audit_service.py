from __future__ import annotations
import logging
from typing import Optional

from sajitech.config import BusinessRules
from sajitech.models.client import ClientAction
from sajitech.models.state import AppState
from sajitech.models.support import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Journal d'audit (plus récent en tête, tronqué) et historique client."""

    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()

    def log_audit(self, user_id: str, module: str, action: str, details: str = "") -> AuditLog:
        entry = AuditLog(user_id=user_id, module=module, action=action, details=details)
        self.state.audit_logs = [entry, *self.state.audit_logs][: self.rules.audit_cap]
        logger.debug("audit %s/%s: %s", module, action, details)
        return entry

    def log_client_action(self, client_id: str, user_id: str, type: str, description: str,
                          amount: Optional[float] = None) -> ClientAction:
        action = ClientAction(client_id=client_id, user_id=user_id, type=type, description=description, amount=amount)
        self.state.client_actions = [action, *self.state.client_actions]
        return action

    def history_for(self, client_id: str) -> list[ClientAction]:
        return [a for a in self.state.client_actions if a.client_id == client_id]
