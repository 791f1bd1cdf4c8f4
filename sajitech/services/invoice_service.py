# sajitech/services/invoice_service.py
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from sajitech.config import BusinessRules
from sajitech.errors import (
    AlreadyValidated, EmptyDocument, ErpError, InvalidTransition, MissingParty, MissingReason, NotFound,
)
from sajitech.models.common import utcnow
from sajitech.models.invoice import PAYMENT_TERM_DAYS, Invoice, InvoiceLine, InvoiceStatus
from sajitech.models.product import ItemType, Product, Service
from sajitech.models.state import AppState
from sajitech.models.stock import MovementType, StockMovement
from sajitech.services.audit_service import AuditService
from sajitech.services.ledger import DocumentTotals, compute_line_totals, price_excl_tax, round2, sum_totals, tax_rate
from sajitech.services.sequence import issue_ref

logger = logging.getLogger(__name__)

CatalogItem = Union[Product, Service]

EDITABLE_LINE_FIELDS = ("description", "quantity", "unit", "price_ht", "tva_rate", "discount")
NON_NEGATIVE_LINE_FIELDS = ("quantity", "price_ht", "tva_rate", "discount")


# ---------- Calculs purs ---------- #

def recompute_line(line: InvoiceLine) -> InvoiceLine:
    t = compute_line_totals(line.quantity, line.price_ht, line.tva_rate, line.discount)
    line.total_ht, line.total_tva, line.total_ttc = t
    return line


def recompute_invoice_totals(lines: Iterable[InvoiceLine], global_discount: float = 0.0) -> DocumentTotals:
    """
    total_ttc = Σ HT + Σ TVA - remise globale.
    La remise globale est déduite après TVA, sans ventilation par ligne :
    simplification volontaire (la TVA déclarée reste celle des lignes).
    """
    return sum_totals(lines, global_discount)


def _apply_totals(inv: Invoice) -> Invoice:
    inv.total_ht, inv.total_tva, inv.total_ttc = recompute_invoice_totals(inv.lines, inv.global_discount)
    return inv


def line_from_catalog(item: CatalogItem, default_tva: float = 20.0) -> InvoiceLine:
    if isinstance(item, Product):
        tva = tax_rate(item.tva, default_tva)
        price_ht = price_excl_tax(item.price or 0, tva)
        line = InvoiceLine(item_id=item.id, item_type=ItemType.PRODUCT, description=item.name,
                           unit=item.unit, price_ht=round2(price_ht), tva_rate=tva)
    else:
        tva = tax_rate(item.tva_rate, default_tva)
        line = InvoiceLine(item_id=item.id, item_type=ItemType.SERVICE, description=item.name,
                           unit=item.unit, price_ht=round2(item.price_ht or 0), tva_rate=tva)
    return recompute_line(line)


# ---------- Service ---------- #

class InvoiceService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()
        self.audit = AuditService(state, self.rules)

    # ----------- lecture -----------
    def list_invoices(self, status: Optional[InvoiceStatus] = None) -> List[Invoice]:
        return [i for i in self.state.invoices if status is None or i.status == status]

    def list_by_client(self, client_id: str) -> List[Invoice]:
        return [i for i in self.state.invoices if i.client_id == client_id]

    def get_by_id(self, invoice_id: str) -> Invoice:
        inv = self.state.invoice(invoice_id)
        if inv is None:
            raise NotFound(f"invoice {invoice_id} not found")
        return inv

    # ----------- brouillon -----------
    def new_draft(self, client_id: str = "", user_id: str = "admin", now: Optional[datetime] = None) -> Invoice:
        now = now or utcnow()
        return Invoice(client_id=client_id, user_id=user_id, created_at=now,
                       due_date=now + timedelta(days=PAYMENT_TERM_DAYS))

    @staticmethod
    def _ensure_draft(inv: Invoice) -> None:
        if not inv.is_draft:
            raise InvalidTransition(f"invoice {inv.number} is {inv.status.value}, lines are frozen")

    def add_line(self, inv: Invoice, item: CatalogItem) -> InvoiceLine:
        self._ensure_draft(inv)
        line = line_from_catalog(item, self.rules.default_tva)
        inv.lines.append(line)
        _apply_totals(inv)
        return line

    def update_line(self, inv: Invoice, line_id: str, patch: Mapping[str, Any]) -> InvoiceLine:
        self._ensure_draft(inv)
        line = inv.find_line(line_id)
        if line is None:
            raise NotFound(f"line {line_id} not found on invoice {inv.id}")
        unknown = set(patch) - set(EDITABLE_LINE_FIELDS)
        if unknown:
            raise ErpError(f"line fields not editable: {', '.join(sorted(unknown))}")
        try:
            candidate = InvoiceLine.model_validate({**line.model_dump(), **patch})
        except ValidationError as e:
            raise ErpError(f"invalid line values: {e.errors()[0]['msg']}") from e
        for k in NON_NEGATIVE_LINE_FIELDS:
            if getattr(candidate, k) < 0:
                raise ErpError(f"{k} must be >= 0")

        for k in patch:
            setattr(line, k, getattr(candidate, k))
        recompute_line(line)
        _apply_totals(inv)
        logger.debug("invoice %s line %s -> %s", inv.id, line.id, line.total_ttc)
        return line

    def remove_line(self, inv: Invoice, line_id: str) -> Invoice:
        self._ensure_draft(inv)
        inv.lines = [ln for ln in inv.lines if ln.id != line_id]
        return _apply_totals(inv)

    def set_global_discount(self, inv: Invoice, amount: float) -> Invoice:
        self._ensure_draft(inv)
        if amount < 0:
            raise ErpError("global discount must be >= 0")
        inv.global_discount = float(amount)
        return _apply_totals(inv)

    def _store(self, inv: Invoice) -> Invoice:
        for idx, existing in enumerate(self.state.invoices):
            if existing.id == inv.id:
                self.state.invoices[idx] = inv
                return inv
        self.state.invoices.insert(0, inv)
        return inv

    def save_draft(self, inv: Invoice) -> Invoice:
        self._ensure_draft(inv)
        stored = self.state.invoice(inv.id)
        if stored is not None and not stored.is_draft:
            raise AlreadyValidated(f"invoice {stored.number} is already {stored.status.value}")
        if not inv.client_id:
            raise MissingParty("select a client before saving the invoice")
        inv.updated_at = utcnow()
        self._store(inv)
        self.audit.log_audit(inv.user_id, "Billing", "Save", f"Brouillon {inv.id} enregistré.")
        return inv

    def delete_draft(self, invoice_id: str) -> None:
        inv = self.get_by_id(invoice_id)
        if not inv.is_draft:
            raise InvalidTransition(f"invoice {inv.number} is {inv.status.value}; cancel it instead")
        self.state.invoices = [i for i in self.state.invoices if i.id != invoice_id]

    # ----------- validation -----------
    def validate(self, inv: Invoice, now: Optional[datetime] = None) -> Invoice:
        stored = self.state.invoice(inv.id)
        if not inv.is_draft or (stored is not None and not stored.is_draft):
            current = stored if stored is not None and not stored.is_draft else inv
            raise AlreadyValidated(f"invoice {current.number} is already {current.status.value}")
        if not inv.lines:
            raise EmptyDocument("the invoice has no lines")
        if not inv.client_id:
            raise MissingParty("select a client before validating the invoice")

        now = now or utcnow()
        _apply_totals(inv)
        number = issue_ref(self.state.settings, self.rules.prefixes.invoice, now)
        inv.number = number
        inv.validated_at = now
        inv.updated_at = now
        inv.status = InvoiceStatus.VALIDATED

        # Pas de contrôle de disponibilité : le stock peut devenir négatif.
        for line in inv.lines:
            if line.item_type != ItemType.PRODUCT or not line.item_id:
                continue
            product = self.state.product(line.item_id)
            if product is None:
                continue
            product.stock_qty = product.stock_qty - line.quantity
            self.state.stock_movements.insert(0, StockMovement(
                product_id=product.id, type=MovementType.SALE, quantity=line.quantity,
                reason=f"Facture n°{number}", user_id=inv.user_id, reference=inv.id, created_at=now,
            ))

        self._store(inv)
        self.audit.log_client_action(inv.client_id, inv.user_id, "Sale", f"Facture validée : {number}", inv.total_ttc)
        self.audit.log_audit(inv.user_id, "Billing", "Validate", f"Facture {number} validée.")
        logger.info("Invoice %s validated (%s TTC, %d lines)", number, inv.total_ttc, len(inv.lines))
        return inv

    def cancel(self, invoice_id: str, reason: str, user_id: str = "admin", now: Optional[datetime] = None) -> Invoice:
        if not (reason or "").strip():
            raise MissingReason("a cancellation reason is required")
        inv = self.get_by_id(invoice_id)
        if inv.status != InvoiceStatus.VALIDATED:
            raise InvalidTransition(f"invoice {inv.number} is {inv.status.value}, only validated invoices can be cancelled")
        inv.cancellation_reason = reason.strip()
        inv.cancelled_at = now or utcnow()
        inv.status = InvoiceStatus.CANCELLED
        self.audit.log_audit(user_id, "Billing", "Cancel", f"Facture {inv.number} annulée : {inv.cancellation_reason}")
        logger.info("Invoice %s cancelled", inv.number)
        return inv
