from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from sajitech.config import BusinessRules
from sajitech.errors import AlreadyValidated, EmptyDocument, ErpError, MissingParty, NotFound
from sajitech.models.common import utcnow
from sajitech.models.purchase import Purchase, PurchaseLine, PurchasePriceLog, PurchaseStatus
from sajitech.models.state import AppState
from sajitech.models.stock import MovementType, StockMovement
from sajitech.services.audit_service import AuditService
from sajitech.services.costing import weighted_average_cost
from sajitech.services.ledger import compute_line_totals, sum_totals, tax_rate
from sajitech.services.sequence import issue_ref

logger = logging.getLogger(__name__)

EDITABLE_LINE_FIELDS = ("description", "quantity", "unit", "price_purchase_ht", "tva_rate")


def recompute_purchase_line(line: PurchaseLine) -> PurchaseLine:
    line.total_ht, line.total_tva, line.total_ttc = compute_line_totals(
        line.quantity, line.price_purchase_ht, line.tva_rate)
    return line


def recompute_purchase_totals(pur: Purchase) -> Purchase:
    pur.total_ht, pur.total_tva, pur.total_ttc = sum_totals(pur.lines)
    return pur


class PurchaseService:
    """Bons d'achat : brouillon -> validé (réception stock + PMP)."""

    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()
        self.audit = AuditService(state, self.rules)

    def list_purchases(self) -> List[Purchase]:
        return list(self.state.purchases)

    def get_by_id(self, purchase_id: str) -> Purchase:
        pur = self.state.purchase(purchase_id)
        if pur is None:
            raise NotFound(f"purchase {purchase_id} not found")
        return pur

    def _draft(self, purchase_id: str) -> Purchase:
        pur = self.get_by_id(purchase_id)
        if pur.status != PurchaseStatus.DRAFT:
            raise AlreadyValidated(f"purchase {pur.number} is already validated")
        return pur

    def create_draft(self, supplier_id: str, user_id: str = "admin", now: Optional[datetime] = None) -> Purchase:
        if not supplier_id:
            raise MissingParty("select a supplier")
        now = now or utcnow()
        number = issue_ref(self.state.settings, self.rules.prefixes.purchase, now)
        pur = Purchase(number=number, supplier_id=supplier_id, date=now.date(), created_at=now)
        self.state.purchases.insert(0, pur)
        self.audit.log_audit(user_id, "Finance", "Purchase Draft", f"Brouillon d'achat créé pour fournisseur {supplier_id}")
        return pur

    def add_line(self, purchase_id: str, product_id: str) -> PurchaseLine:
        pur = self._draft(purchase_id)
        prod = self.state.product(product_id)
        if prod is None:
            raise NotFound(f"product {product_id} not found")
        line = PurchaseLine(
            product_id=prod.id, description=prod.name, quantity=1, unit=prod.unit,
            price_purchase_ht=prod.cost or 0, tva_rate=tax_rate(prod.tva, self.rules.default_tva),
        )
        pur.lines.append(recompute_purchase_line(line))
        recompute_purchase_totals(pur)
        return line

    def update_line(self, purchase_id: str, line_id: str, patch: Mapping[str, Any]) -> PurchaseLine:
        pur = self._draft(purchase_id)
        line = pur.find_line(line_id)
        if line is None:
            raise NotFound(f"line {line_id} not found on purchase {pur.number}")
        unknown = set(patch) - set(EDITABLE_LINE_FIELDS)
        if unknown:
            raise ErpError(f"line fields not editable: {', '.join(sorted(unknown))}")
        try:
            candidate = PurchaseLine.model_validate({**line.model_dump(), **patch})
        except ValidationError as e:
            raise ErpError(f"invalid line values: {e.errors()[0]['msg']}") from e
        if candidate.quantity <= 0:
            raise ErpError("received quantity must be > 0")
        for k in ("price_purchase_ht", "tva_rate"):
            if getattr(candidate, k) < 0:
                raise ErpError(f"{k} must be >= 0")
        for k in patch:
            setattr(line, k, getattr(candidate, k))
        recompute_purchase_line(line)
        recompute_purchase_totals(pur)
        return line

    def remove_line(self, purchase_id: str, line_id: str) -> Purchase:
        pur = self._draft(purchase_id)
        pur.lines = [ln for ln in pur.lines if ln.id != line_id]
        return recompute_purchase_totals(pur)

    def validate(self, purchase_id: str, user_id: str = "admin", now: Optional[datetime] = None) -> Purchase:
        """
        Réception : pour chaque ligne, une seule fois, mise à jour du stock,
        du PMP, de l'historique des prix et du journal de mouvements.
        Revalider un achat déjà validé est refusé (double comptage).
        """
        pur = self._draft(purchase_id)
        if not pur.lines:
            raise EmptyDocument(f"purchase {pur.number} has no lines")
        if not pur.supplier_id:
            raise MissingParty(f"purchase {pur.number} has no supplier")
        now = now or utcnow()

        for line in pur.lines:
            prod = self.state.product(line.product_id)
            if prod is None:
                logger.warning("Purchase %s: product %s no longer exists, line skipped", pur.number, line.product_id)
                continue
            old_cost = prod.cost
            prod.stock_qty, prod.cost = weighted_average_cost(
                prod.stock_qty or 0, prod.cost or 0, line.quantity, line.price_purchase_ht)
            logger.debug("PMP %s: %s -> %s", prod.id, old_cost, prod.cost)

            self.state.purchase_price_history.append(PurchasePriceLog(
                product_id=prod.id, supplier_id=pur.supplier_id, price_ht=line.price_purchase_ht,
                date=pur.date, purchase_id=pur.id,
            ))
            self.state.stock_movements.insert(0, StockMovement(
                product_id=prod.id, type=MovementType.PURCHASE, quantity=line.quantity,
                reason=f"Achat n°{pur.number}", user_id=user_id, reference=pur.id, created_at=now,
            ))

        pur.validated_at = now
        pur.status = PurchaseStatus.VALIDATED
        self.audit.log_audit(user_id, "Finance", "Purchase Validate", f"Achat {pur.number} validé, stocks et PMP mis à jour.")
        logger.info("Purchase %s validated (%d lines, %s HT)", pur.number, len(pur.lines), pur.total_ht)
        return pur

    def price_history(self, product_id: str) -> List[PurchasePriceLog]:
        return [p for p in self.state.purchase_price_history if p.product_id == product_id]
