from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sajitech.config import BusinessRules
from sajitech.errors import ErpError, NotFound
from sajitech.models.common import as_utc, utcnow
from sajitech.models.state import AppState
from sajitech.models.support import Ticket, TicketCategory, TicketPriority, TicketStatus
from sajitech.services.audit_service import AuditService

logger = logging.getLogger(__name__)

DEFAULT_SLA_HOURS = 48


def sla_deadline(priority: TicketPriority, created_at: datetime, rules: Optional[BusinessRules] = None) -> datetime:
    """Échéance de résolution fixée à la création : 2h critique, 8h haute, 48h sinon."""
    hours = (rules or BusinessRules()).sla_hours.get(priority, DEFAULT_SLA_HOURS)
    return created_at + timedelta(hours=hours)


def is_sla_breached(ticket: Ticket, now: Optional[datetime] = None) -> bool:
    if not ticket.is_open or ticket.sla_deadline is None:
        return False
    return as_utc(ticket.sla_deadline) < (as_utc(now) or utcnow())


class SupportService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()
        self.audit = AuditService(state, self.rules)

    def open_ticket(self, subject: str, user_id: str, *, description: str = "",
                    priority: TicketPriority = TicketPriority.MEDIUM,
                    category: TicketCategory = TicketCategory.OTHER,
                    client_id: Optional[str] = None, now: Optional[datetime] = None) -> Ticket:
        if not (subject or "").strip():
            raise ErpError("a ticket needs a subject")
        now = now or utcnow()
        ticket = Ticket(subject=subject.strip(), user_id=user_id, description=description, priority=priority,
                        category=category, client_id=client_id, created_at=now, updated_at=now,
                        sla_deadline=sla_deadline(priority, now, self.rules))
        self.state.tickets.insert(0, ticket)
        logger.info("Ticket %s opened (%s, SLA %s)", ticket.id, priority.value, ticket.sla_deadline.isoformat())
        return ticket

    def change_status(self, ticket_id: str, status: TicketStatus, now: Optional[datetime] = None) -> Ticket:
        ticket = self.state.ticket(ticket_id)
        if ticket is None:
            raise NotFound(f"ticket {ticket_id} not found")
        now = now or utcnow()
        if status in (TicketStatus.RESOLVED, TicketStatus.CLOSED) and ticket.resolution_time is None:
            ticket.resolution_time = int((as_utc(now) - as_utc(ticket.created_at)).total_seconds() // 60)
        ticket.status = status
        ticket.updated_at = now
        self.audit.log_audit(ticket.user_id, "Support", "Status", f"Ticket {ticket.id} -> {status.value}")
        return ticket

    def assign(self, ticket_id: str, user_id: str) -> Ticket:
        ticket = self.state.ticket(ticket_id)
        if ticket is None:
            raise NotFound(f"ticket {ticket_id} not found")
        ticket.assigned_to = user_id
        if ticket.status == TicketStatus.OPEN:
            ticket.status = TicketStatus.IN_PROGRESS
        return ticket

    def breached(self, now: Optional[datetime] = None) -> List[Ticket]:
        return [t for t in self.state.tickets if is_sla_breached(t, now)]
