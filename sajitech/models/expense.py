from __future__ import annotations
from datetime import date as date_type, datetime
from functools import partial

from pydantic import BaseModel, Field

from .common import gen_id, utcnow

EXPENSE_CATEGORIES = (
    "Loyer", "Electricité/Eau", "Salaires", "Internet/Tel", "Transport",
    "Marketing", "Maintenance", "Fournitures Bureau", "Divers",
)


class Expense(BaseModel):
    """Charge hors achats de marchandises (loyer, salaires...)."""
    id: str = Field(default_factory=partial(gen_id, "EXP"))
    category: str = "Loyer"
    amount: float
    label: str
    date: date_type = Field(default_factory=lambda: utcnow().date())
    payment_method: str = "Cash"
    created_at: datetime = Field(default_factory=utcnow)
