from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sajitech.config import BusinessRules
from sajitech.models.state import AppState
from sajitech.models.support import AppNotification, NotificationPriority, NotificationType, UserRole
from sajitech.services.scoring import refresh_driver_scores
from sajitech.services.support_service import is_sla_breached

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()

    def create_notification(self, **data) -> AppNotification:
        notif = AppNotification(**data)
        self.state.notifications = [notif, *self.state.notifications][: self.rules.notifications_cap]
        return notif

    def _already_raised(self, entity_id: str, priority: NotificationPriority) -> bool:
        # une alerte lue peut être relevée à nouveau si la condition réapparaît
        return any(
            n.related_entity_id == entity_id and n.priority == priority and not n.is_read
            for n in self.state.notifications
        )

    def unread_for(self, role: Optional[UserRole] = None, user_id: Optional[str] = None) -> List[AppNotification]:
        out = []
        for n in self.state.notifications:
            if n.is_read:
                continue
            if n.user_id and n.user_id != user_id:
                continue
            if n.role and role not in (n.role, UserRole.ADMIN):
                continue
            out.append(n)
        return out

    def mark_read(self, notification_id: str) -> None:
        for n in self.state.notifications:
            if n.id == notification_id:
                n.is_read = True

    def run_pulse_checks(self, now: Optional[datetime] = None) -> List[AppNotification]:
        """
        Passage périodique :
        - recalcul des scores chauffeurs
        - alerte critique par ticket ouvert hors SLA (une seule fois)
        - alerte par produit sous le seuil de réapprovisionnement (une seule fois)
        """
        refresh_driver_scores(self.state, self.rules.scoring)
        raised: List[AppNotification] = []

        for tk in self.state.tickets:
            if is_sla_breached(tk, now) and not self._already_raised(tk.id, NotificationPriority.CRITICAL):
                raised.append(self.create_notification(
                    type=NotificationType.SUPPORT, priority=NotificationPriority.CRITICAL,
                    title=f"SLA Dépassé : Ticket {tk.id}",
                    message=f'Le ticket "{tk.subject}" nécessite une intervention immédiate.',
                    role=UserRole.MANAGER, related_entity_id=tk.id, related_entity_type="ticket",
                ))

        for p in self.state.products:
            if p.is_low_stock and not self._already_raised(p.id, NotificationPriority.HIGH):
                raised.append(self.create_notification(
                    type=NotificationType.FINANCE, priority=NotificationPriority.HIGH,
                    title=f"Stock bas : {p.name}",
                    message=f"{p.stock_qty:g} {p.unit} restant(s), seuil {p.min_stock:g}.",
                    role=UserRole.MANAGER, related_entity_id=p.id, related_entity_type="product",
                ))

        if raised:
            logger.info("Pulse checks raised %d notification(s)", len(raised))
        return raised
