from __future__ import annotations
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Optional

from pydantic import BaseModel, Field

from .common import gen_id, utcnow


class UserRole(str, Enum):
    ADMIN = "Admin"
    VENDEUR = "Vendeur"
    TECHNICIEN = "Technicien"
    MANAGER = "Manager"
    CHAUFFEUR = "Chauffeur"


class TicketStatus(str, Enum):
    OPEN = "Ouvert"
    IN_PROGRESS = "En cours"
    RESOLVED = "Résolu"
    CLOSED = "Fermé"


class TicketPriority(str, Enum):
    LOW = "Basse"
    MEDIUM = "Moyenne"
    HIGH = "Haute"
    CRITICAL = "Critique"


class TicketCategory(str, Enum):
    TECH = "Technique"
    LOGISTICS = "Logistique"
    BILLING = "Facturation"
    OTHER = "Autre"


class Ticket(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "TK"))
    client_id: Optional[str] = None
    user_id: str
    assigned_to: Optional[str] = None
    subject: str
    description: str = ""
    category: TicketCategory = TicketCategory.OTHER
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    related_vehicle_id: Optional[str] = None
    related_driver_id: Optional[str] = None
    sla_deadline: Optional[datetime] = None
    resolution_time: Optional[int] = None  # minutes
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED)


class NotificationPriority(str, Enum):
    LOW = "Info"
    MEDIUM = "Action Requise"
    HIGH = "Urgent"
    CRITICAL = "Critique"


class NotificationType(str, Enum):
    SYSTEM = "Système"
    FLEET = "Flotte"
    MAINTENANCE = "Maintenance"
    SUPPORT = "Support"
    FINANCE = "Finance"
    HR = "RH"


class AppNotification(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "NTF", suffix=True))
    type: NotificationType = NotificationType.SYSTEM
    priority: NotificationPriority = NotificationPriority.LOW
    title: str = "Alerte"
    message: str = ""
    user_id: Optional[str] = None
    role: Optional[UserRole] = None
    is_read: bool = False
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class AuditLog(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "LOG", suffix=True))
    user_id: str
    module: str
    action: str
    details: str = ""
    created_at: datetime = Field(default_factory=utcnow)
