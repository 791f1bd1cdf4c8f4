from __future__ import annotations
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .common import gen_id, utcnow
from .product import ItemType

DRAFT_NUMBER = "BROUILLON"
PAYMENT_TERM_DAYS = 30


class InvoiceType(str, Enum):
    MIXED = "Mixte"
    PRODUCT = "Produit"
    SERVICE = "Service"
    CREDIT_NOTE = "Avoir"


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    VALIDATED = "Validated"
    CANCELLED = "Cancelled"


class InvoiceLine(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "L", suffix=True))
    item_id: Optional[str] = None
    item_type: ItemType = ItemType.PRODUCT
    description: str = ""
    quantity: float = 1.0
    unit: str = ""
    price_ht: float = 0.0
    tva_rate: float = 20.0
    discount: float = 0.0
    # snapshots recalculés par le ledger
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0


def _default_due_date() -> datetime:
    return utcnow() + timedelta(days=PAYMENT_TERM_DAYS)


class Invoice(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "INV"))
    number: str = DRAFT_NUMBER
    type: InvoiceType = InvoiceType.MIXED
    status: InvoiceStatus = InvoiceStatus.DRAFT

    client_id: str = ""
    user_id: str = "admin"

    lines: List[InvoiceLine] = Field(default_factory=list)
    global_discount: float = 0.0
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    due_date: datetime = Field(default_factory=_default_due_date)
    validated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_status(self) -> "Invoice":
        if self.status != InvoiceStatus.DRAFT and self.validated_at is None:
            raise ValueError(f"invoice {self.id} is {self.status.value} without validated_at")
        if self.status == InvoiceStatus.CANCELLED and not (self.cancellation_reason or "").strip():
            raise ValueError(f"invoice {self.id} is cancelled without a reason")
        return self

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT

    def find_line(self, line_id: str) -> Optional[InvoiceLine]:
        for ln in self.lines:
            if ln.id == line_id:
                return ln
        return None
