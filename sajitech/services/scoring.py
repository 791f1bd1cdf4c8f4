"""Scores dérivés (jamais source de vérité, toujours recalculés).

- chauffeurs : taux de missions terminées, consommation, cohérence km
- clients : approximation RFM (chiffre d'affaires, nombre de commandes, récence)
"""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional

from sajitech.config import ScoringConfig
from sajitech.models.client import Client
from sajitech.models.common import as_utc, utcnow
from sajitech.models.fleet import FuelLog, Mission, MissionStatus
from sajitech.models.invoice import Invoice, InvoiceStatus
from sajitech.models.state import AppState
from sajitech.services.ledger import round2

SECONDS_PER_DAY = 24 * 3600


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------- Chauffeurs ---------- #

def driver_score(driver_id: str, missions: Iterable[Mission], fuel_logs: Iterable[FuelLog],
                 config: Optional[ScoringConfig] = None) -> int:
    cfg = config or ScoringConfig()
    own = [m for m in missions if m.driver_id == driver_id]
    completed = [m for m in own if m.status == MissionStatus.COMPLETED]
    if not completed:
        return cfg.default_driver_score

    trip_score = len(completed) / max(1, len(own)) * 100
    total_km = sum(m.distance_km for m in completed)
    total_liters = sum(f.liters for f in fuel_logs if f.driver_id == driver_id)
    ratio = total_liters / total_km * 100 if total_km > 0 else cfg.fallback_consumption
    fuel_score = _clamp(100 - (ratio - cfg.reference_consumption) * 10)
    km_score = 100 if total_km > 0 else 50

    final = trip_score * cfg.trip_weight + fuel_score * cfg.fuel_weight + km_score * cfg.km_weight
    return int(_clamp(_round_half_up(final)))


def refresh_driver_scores(state: AppState, config: Optional[ScoringConfig] = None) -> Dict[str, int]:
    scores: Dict[str, int] = {}
    for d in state.drivers:
        d.smart_score = driver_score(d.id, state.missions, state.fuel_logs, config)
        scores[d.id] = d.smart_score
    return scores


# ---------- Clients ---------- #

class ClientSegment(str, Enum):
    VIP = "VIP"
    GOLD = "Gold"
    NEEDS_REACTIVATION = "NeedsReactivation"
    STANDARD = "Standard"


class ClientStat(NamedTuple):
    client_id: str
    total_revenue: float
    order_count: int
    last_date: datetime
    days_since_last: int
    score: float
    segment: ClientSegment


def _counts_as_revenue(inv: Invoice) -> bool:
    # les factures annulées ne comptent pas dans le CA
    return inv.status == InvoiceStatus.VALIDATED


def segment_for(score: float, days_since_last: int, config: Optional[ScoringConfig] = None) -> ClientSegment:
    cfg = config or ScoringConfig()
    if score > cfg.vip_threshold:
        return ClientSegment.VIP
    if score > cfg.gold_threshold:
        return ClientSegment.GOLD
    if days_since_last > cfg.reactivation_days:
        return ClientSegment.NEEDS_REACTIVATION
    return ClientSegment.STANDARD


def client_stats(client: Client, invoices: Iterable[Invoice], now: Optional[datetime] = None,
                 config: Optional[ScoringConfig] = None) -> ClientStat:
    cfg = config or ScoringConfig()
    now = as_utc(now) or utcnow()
    own = [i for i in invoices if i.client_id == client.id and _counts_as_revenue(i)]

    total_revenue = round2(sum(i.total_ttc for i in own))
    order_count = len(own)
    last_date = as_utc(client.created_at)
    if own:
        last_date = max(as_utc(i.validated_at or i.created_at) for i in own)

    days_since_last = int((now - last_date).total_seconds() // SECONDS_PER_DAY)
    score = total_revenue / cfg.revenue_divisor + order_count * cfg.order_weight
    if own and days_since_last < cfg.recency_days:
        score += cfg.recency_bonus

    return ClientStat(client.id, total_revenue, order_count, last_date, days_since_last, score,
                      segment_for(score, days_since_last, cfg))


def client_segments(state: AppState, now: Optional[datetime] = None,
                    config: Optional[ScoringConfig] = None) -> Dict[str, ClientStat]:
    return {c.id: client_stats(c, state.invoices, now, config) for c in state.clients}


def top_clients(state: AppState, n: int = 10, now: Optional[datetime] = None,
                config: Optional[ScoringConfig] = None) -> List[ClientStat]:
    stats = client_segments(state, now, config).values()
    return sorted(stats, key=lambda s: s.score, reverse=True)[:n]
