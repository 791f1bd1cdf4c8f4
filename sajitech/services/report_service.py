"""Rapport de direction : finances, flotte, support et stock.

Calculé à la demande sur le document courant, jamais stocké.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, NamedTuple, Optional

from sajitech.config import ReportThresholds
from sajitech.models.fleet import MissionStatus
from sajitech.models.invoice import InvoiceStatus
from sajitech.models.purchase import PurchaseStatus
from sajitech.models.state import AppState
from sajitech.models.support import TicketStatus
from sajitech.services.ledger import round2


class InsightKind(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class ExecutiveInsight(NamedTuple):
    kind: InsightKind
    title: str
    message: str
    impact: str


class ExecutiveReport(NamedTuple):
    revenue: float
    purchases: float
    expenses: float
    profit: float
    fuel_cost: float
    distance_km: float
    cost_per_km: float
    open_tickets: int
    resolved_tickets: int
    resolution_rate: float
    stock_by_category: Dict[str, float]
    insights: List[ExecutiveInsight]


def stock_by_category(state: AppState) -> Dict[str, float]:
    """Valeur du stock (quantité x PMP) par catégorie, catégories vides exclues."""
    out: Dict[str, float] = {}
    for cat in state.categories:
        value = sum(p.stock_qty * p.cost for p in state.products if p.category_id == cat.id)
        if value > 0:
            out[cat.name] = round2(value)
    return out


def insights_for(profit: float, cost_per_km: float, resolution_rate: float, revenue: float,
                 thresholds: Optional[ReportThresholds] = None) -> List[ExecutiveInsight]:
    th = thresholds or ReportThresholds()
    out: List[ExecutiveInsight] = []
    if profit < 0:
        out.append(ExecutiveInsight(InsightKind.NEGATIVE, "Alerte Rentabilité",
                                    "Vos charges dépassent vos revenus.", "Critique"))
    if cost_per_km > th.max_cost_per_km:
        out.append(ExecutiveInsight(InsightKind.NEGATIVE, "Anomalie Flotte",
                                    "Coût/KM anormalement élevé.", "Moyen"))
    if resolution_rate < th.min_resolution_rate:
        out.append(ExecutiveInsight(InsightKind.NEUTRAL, "Goulot Support",
                                    f"Taux de résolution inférieur à {th.min_resolution_rate:g}%.", "Client"))
    if revenue > th.revenue_target:
        out.append(ExecutiveInsight(InsightKind.POSITIVE, "Croissance",
                                    "Objectif mensuel de CA atteint.", "Stratégique"))
    return out


def executive_report(state: AppState, thresholds: Optional[ReportThresholds] = None) -> ExecutiveReport:
    # brouillons et factures annulées ne font pas de chiffre d'affaires
    revenue = round2(sum(i.total_ttc for i in state.invoices
                         if i.status not in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)))
    purchases = round2(sum(p.total_ttc for p in state.purchases if p.status == PurchaseStatus.VALIDATED))
    expenses = round2(sum(e.amount for e in state.expenses))
    profit = round2(revenue - purchases - expenses)

    fuel_cost = round2(sum(f.total_amount for f in state.fuel_logs))
    distance = round2(sum(m.distance_km for m in state.missions if m.status == MissionStatus.COMPLETED))
    cost_per_km = round2(fuel_cost / distance) if distance > 0 else 0.0

    open_tickets = sum(1 for t in state.tickets if t.status == TicketStatus.OPEN)
    resolved = sum(1 for t in state.tickets if t.status == TicketStatus.RESOLVED)
    resolution_rate = round2(resolved / len(state.tickets) * 100) if state.tickets else 100.0

    return ExecutiveReport(
        revenue=revenue, purchases=purchases, expenses=expenses, profit=profit,
        fuel_cost=fuel_cost, distance_km=distance, cost_per_km=cost_per_km,
        open_tickets=open_tickets, resolved_tickets=resolved, resolution_rate=resolution_rate,
        stock_by_category=stock_by_category(state),
        insights=insights_for(profit, cost_per_km, resolution_rate, revenue, thresholds),
    )
