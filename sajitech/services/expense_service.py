from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sajitech.config import BusinessRules
from sajitech.errors import ErpError
from sajitech.models.common import utcnow
from sajitech.models.expense import EXPENSE_CATEGORIES, Expense
from sajitech.models.state import AppState
from sajitech.services.audit_service import AuditService
from sajitech.services.ledger import round2

logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.audit = AuditService(state, rules)

    def record_expense(self, label: str, amount: float, category: str = "Loyer", *,
                       payment_method: str = "Cash", on: Optional[date] = None,
                       user_id: str = "admin", now: Optional[datetime] = None) -> Expense:
        if not (label or "").strip():
            raise ErpError("an expense needs a label")
        if amount <= 0:
            raise ErpError("expense amount must be > 0")
        if category not in EXPENSE_CATEGORIES:
            raise ErpError(f"unknown expense category {category!r}")
        now = now or utcnow()
        expense = Expense(label=label.strip(), amount=amount, category=category,
                          payment_method=payment_method, date=on or now.date(), created_at=now)
        self.state.expenses.insert(0, expense)
        self.audit.log_audit(user_id, "Finance", "Expense Create", f"Dépense {expense.label} de {amount:g} DH")
        logger.info("Expense %s recorded (%s, %s)", expense.id, category, amount)
        return expense

    def total(self) -> float:
        return round2(sum(e.amount for e in self.state.expenses))

    def by_category(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for e in self.state.expenses:
            out[e.category] = round2(out.get(e.category, 0.0) + e.amount)
        return out

    def between(self, start: date, end: date) -> List[Expense]:
        return [e for e in self.state.expenses if start <= e.date <= end]
