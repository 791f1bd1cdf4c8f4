from __future__ import annotations
from datetime import date as date_type, datetime
from enum import Enum
from functools import partial
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .common import gen_id, utcnow


class PurchaseStatus(str, Enum):
    DRAFT = "Brouillon"
    VALIDATED = "Validé"


class PurchaseLine(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "PL", suffix=True))
    product_id: str
    description: str = ""
    quantity: float = 1.0
    unit: str = ""
    price_purchase_ht: float = 0.0
    tva_rate: float = 20.0
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0


class Purchase(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "PUR"))
    number: str
    supplier_id: str
    status: PurchaseStatus = PurchaseStatus.DRAFT
    date: date_type = Field(default_factory=lambda: utcnow().date())
    lines: List[PurchaseLine] = Field(default_factory=list)
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)
    validated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_status(self) -> "Purchase":
        if self.status == PurchaseStatus.VALIDATED and self.validated_at is None:
            raise ValueError(f"purchase {self.id} is validated without validated_at")
        return self

    def find_line(self, line_id: str) -> Optional[PurchaseLine]:
        for ln in self.lines:
            if ln.id == line_id:
                return ln
        return None


class PurchasePriceLog(BaseModel):
    """Historique des prix d'achat, immuable."""
    id: str = Field(default_factory=partial(gen_id, "LOG", suffix=True))
    product_id: str
    supplier_id: str
    price_ht: float
    date: date_type
    purchase_id: str
