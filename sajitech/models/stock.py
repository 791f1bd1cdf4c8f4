from __future__ import annotations
from datetime import datetime
from enum import Enum
from functools import partial
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import gen_id, utcnow


class MovementType(str, Enum):
    PURCHASE = "Purchase"
    SALE = "Sale"
    IN = "In"
    OUT = "Out"
    ADJUSTMENT = "Adjustment"


class StockMovement(BaseModel):
    # journal append-only : jamais modifié après création
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=partial(gen_id, "MV", suffix=True))
    product_id: str
    type: MovementType
    quantity: float
    reason: str = ""
    user_id: str = "admin"
    reference: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class SaleItem(BaseModel):
    product_id: str
    name: str
    quantity: float = 1.0
    catalog_price: float = 0.0  # HT dérivé du prix catalogue
    price_ht: float = 0.0
    discount: float = 0.0
    tva: float = 20.0


class Sale(BaseModel):
    id: str
    user_id: str
    items: List[SaleItem] = Field(default_factory=list)
    global_discount: float = 0.0
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0
    payment_mode: str = "Cash"
    status: str = "Paid"
    created_at: datetime = Field(default_factory=utcnow)
