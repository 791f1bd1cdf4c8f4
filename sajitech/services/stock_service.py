from __future__ import annotations
import logging
from typing import List, Optional

from sajitech.config import BusinessRules
from sajitech.errors import ErpError, NotFound
from sajitech.models.product import Product
from sajitech.models.state import AppState
from sajitech.models.stock import MovementType, StockMovement
from sajitech.services.audit_service import AuditService
from sajitech.services.ledger import round2

logger = logging.getLogger(__name__)

MANUAL_TYPES = (MovementType.IN, MovementType.OUT, MovementType.ADJUSTMENT)


class StockService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.audit = AuditService(state, rules)

    def record_movement(self, product_id: str, type: MovementType, quantity: float, reason: str = "",
                        user_id: str = "admin") -> StockMovement:
        """
        Mouvement manuel :
        - In / Out : entrée ou sortie de ``quantity``
        - Adjustment : la quantité devient ``quantity`` (inventaire physique)
        """
        if type not in MANUAL_TYPES:
            raise ErpError(f"{type.value} movements are created by purchases and sales only")
        if quantity < 0:
            raise ErpError("quantity must be >= 0")
        prod = self.state.product(product_id)
        if prod is None:
            raise NotFound(f"product {product_id} not found")

        if type == MovementType.IN:
            prod.stock_qty += quantity
        elif type == MovementType.OUT:
            prod.stock_qty -= quantity
        else:
            prod.stock_qty = quantity

        mv = StockMovement(product_id=prod.id, type=type, quantity=quantity, reason=reason, user_id=user_id)
        self.state.stock_movements.insert(0, mv)
        self.audit.log_audit(user_id, "Stock", "Adjustment", f"Ajustement manuel: {type.value} pour {prod.name}")
        logger.info("Stock %s %s %s -> %s", prod.id, type.value, quantity, prod.stock_qty)
        return mv

    def low_stock(self) -> List[Product]:
        return [p for p in self.state.products if p.is_low_stock]

    def movements_for(self, product_id: str) -> List[StockMovement]:
        return [m for m in self.state.stock_movements if m.product_id == product_id]

    def stock_value(self) -> float:
        """Valorisation au PMP des quantités positives."""
        return round2(sum(max(0.0, p.stock_qty) * (p.cost or 0) for p in self.state.products))
