from __future__ import annotations
from enum import Enum
from functools import partial
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from .common import gen_id, utcnow


class ItemType(str, Enum):
    PRODUCT = "PRODUIT"
    SERVICE = "SERVICE"


class Category(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "CAT"))
    name: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "PRD"))
    name: str
    sku: str = ""
    category_id: Optional[str] = None
    price: float = 0.0       # prix catalogue TTC
    cost: float = 0.0        # PMP HT, recalculé à chaque réception
    unit: str = "Pièce (pcs)"
    stock_qty: float = 0.0
    min_stock: float = 1.0
    tva: Optional[float] = 20.0
    image: Optional[str] = None

    @property
    def is_low_stock(self) -> bool:
        return self.stock_qty <= self.min_stock


class Service(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "SRV"))
    reference: str = ""
    name: str
    description: str = ""
    category_id: Optional[str] = None
    price_ht: float = 0.0
    tva_rate: Optional[float] = 20.0
    unit: str = "prestation"
    active: bool = True
    is_variable_price: bool = False
