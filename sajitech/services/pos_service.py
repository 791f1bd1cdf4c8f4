"""Caisse (point de vente) : panier, remises, encaissement."""
from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sajitech.config import BusinessRules
from sajitech.errors import DiscountNotAllowed, EmptyDocument, ErpError, NotFound, StockUnavailable
from sajitech.models.common import utcnow
from sajitech.models.product import Product
from sajitech.models.state import WALK_IN_CLIENT_ID, AppState
from sajitech.models.stock import MovementType, Sale, SaleItem, StockMovement
from sajitech.models.support import UserRole
from sajitech.services.audit_service import AuditService
from sajitech.services.ledger import DocumentTotals, price_excl_tax, round2, tax_rate
from sajitech.services.sequence import issue_ref

logger = logging.getLogger(__name__)

PAYMENT_MODES = ("Cash", "Card", "Transfer")


class Cart(BaseModel):
    items: List[SaleItem] = Field(default_factory=list)
    global_discount: float = 0.0

    def find(self, product_id: str) -> Optional[SaleItem]:
        for it in self.items:
            if it.product_id == product_id:
                return it
        return None


def _line_ht(item: SaleItem) -> float:
    return max(0.0, item.price_ht * item.quantity - item.discount)


def cart_totals(items: List[SaleItem], global_discount: float = 0.0) -> DocumentTotals:
    """
    La remise globale est ventilée au prorata du HT de chaque ligne pour
    calculer la TVA (contrairement à la facture, où elle est post-TVA).
    """
    total_ht = sum(_line_ht(it) for it in items)
    after_discount_ht = max(0.0, total_ht - global_discount)
    total_tva = 0.0
    for it in items:
        line_ht = _line_ht(it)
        weight = line_ht / total_ht if total_ht > 0 else 0.0
        line_net_ht = max(0.0, line_ht - global_discount * weight)
        total_tva += line_net_ht * it.tva / 100
    ht = round2(after_discount_ht)
    tva = round2(total_tva)
    return DocumentTotals(ht, tva, round2(ht + tva))


class PosService:
    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()
        self.audit = AuditService(state, self.rules)

    # ---------- Panier ---------- #

    def add_to_cart(self, cart: Cart, product: Product) -> SaleItem:
        if product.stock_qty <= 0:
            raise StockUnavailable(f"{product.name}: stock épuisé")
        existing = cart.find(product.id)
        if existing is not None:
            existing.quantity += 1
            return existing
        tva = tax_rate(product.tva, self.rules.default_tva)
        ht = price_excl_tax(product.price or 0, tva)
        item = SaleItem(product_id=product.id, name=product.name, quantity=1,
                        catalog_price=ht, price_ht=ht, discount=0, tva=tva)
        cart.items.append(item)
        return item

    def update_quantity(self, cart: Cart, product_id: str, delta: float) -> Cart:
        for it in cart.items:
            if it.product_id == product_id:
                it.quantity = max(0.0, it.quantity + delta)
        cart.items = [it for it in cart.items if it.quantity > 0]
        return cart

    def discount_limit(self, role: UserRole) -> float:
        return self.rules.discount_limits.get(role, 0.0)

    def set_item_discount(self, cart: Cart, product_id: str, discount: float, role: UserRole) -> SaleItem:
        item = cart.find(product_id)
        if item is None:
            raise NotFound(f"product {product_id} is not in the cart")
        if discount < 0:
            raise ErpError("discount must be >= 0")
        limit_pct = self.discount_limit(role)
        gross = item.price_ht * item.quantity
        if discount > round2(gross * limit_pct / 100):
            raise DiscountNotAllowed(f"{role.value}: remise limitée à {limit_pct:g}%")
        item.discount = discount
        return item

    def set_global_discount(self, cart: Cart, discount: float, role: UserRole) -> Cart:
        if discount < 0:
            raise ErpError("discount must be >= 0")
        gross = sum(it.price_ht * it.quantity for it in cart.items)
        limit_pct = self.discount_limit(role)
        if discount > round2(gross * limit_pct / 100):
            raise DiscountNotAllowed(f"{role.value}: remise limitée à {limit_pct:g}%")
        cart.global_discount = discount
        return cart

    # ---------- Encaissement ---------- #

    def checkout(self, cart: Cart, payment_mode: str, user_id: str, now: Optional[datetime] = None) -> Sale:
        if not cart.items:
            raise EmptyDocument("the cart is empty")
        if payment_mode not in PAYMENT_MODES:
            raise ErpError(f"unknown payment mode {payment_mode!r}")
        for it in cart.items:
            if self.state.product(it.product_id) is None:
                raise NotFound(f"product {it.product_id} not found")

        now = now or utcnow()
        totals = cart_totals(cart.items, cart.global_discount)
        sale_id = issue_ref(self.state.settings, self.rules.prefixes.ticket, now)
        sale = Sale(
            id=sale_id, user_id=user_id, items=[it.model_copy() for it in cart.items],
            global_discount=cart.global_discount, total_ht=totals.total_ht, total_tva=totals.total_tva,
            total_ttc=totals.total_ttc, payment_mode=payment_mode, status="Paid", created_at=now,
        )

        for it in sale.items:
            prod = self.state.product(it.product_id)
            prod.stock_qty -= it.quantity
            self.state.stock_movements.insert(0, StockMovement(
                product_id=prod.id, type=MovementType.SALE, quantity=it.quantity,
                reason=f"Ticket {sale_id}", user_id=user_id, reference=sale_id, created_at=now,
            ))

        self.state.sales.insert(0, sale)
        self.audit.log_client_action(WALK_IN_CLIENT_ID, user_id, "Sale", f"Achat au comptoir (Ticket {sale_id})", sale.total_ttc)
        self.audit.log_audit(user_id, "POS", "Sale", f"Vente effectuée - Ticket {sale_id}")
        logger.info("POS sale %s: %s TTC (%s)", sale_id, sale.total_ttc, payment_mode)
        cart.items = []
        cart.global_discount = 0.0
        return sale
