from __future__ import annotations
from enum import Enum
from functools import partial
from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from .common import gen_id, utcnow


class ClientType(str, Enum):
    PARTICULIER = "Particulier"
    SOCIETE = "Société"


class ClientStatus(str, Enum):
    ACTIVE = "Actif"
    BLOCKED = "Bloqué"


class Client(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "CLI"))
    name: str
    type: ClientType = ClientType.PARTICULIER
    status: ClientStatus = ClientStatus.ACTIVE
    phone: str = ""
    city: str = ""
    ice: Optional[str] = None
    address: Optional[str] = None
    email: EmailStr | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Supplier(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "SUP"))
    name: str
    ice: Optional[str] = None
    tax_id: Optional[str] = None  # IF
    phone: str = ""
    email: EmailStr | None = None
    city: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class ClientAction(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "ACT", suffix=True))
    client_id: str
    user_id: str
    type: str
    description: str
    amount: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
