"""Arithmétique de ligne HT / TVA / TTC.

Toutes les valeurs monétaires sont arrondies à 2 décimales, au demi
supérieur en valeur absolue (``ROUND_HALF_UP`` de :mod:`decimal`, qui
s'éloigne de zéro). Le PMP est conservé à 4 décimales.

Politique de remise : si la remise de ligne dépasse le brut, le total HT
est ramené à 0. Une ligne ne porte jamais de montant négatif.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, NamedTuple, Optional

_CENT = Decimal("0.01")
_TEN_THOUSANDTH = Decimal("0.0001")


def _quantize(value: float, step: Decimal) -> float:
    # str() évite de propager l'erreur binaire du float (1.005 -> 1.01)
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    return _quantize(value, _CENT)


def round4(value: float) -> float:
    return _quantize(value, _TEN_THOUSANDTH)


class LineTotals(NamedTuple):
    total_ht: float
    total_tva: float
    total_ttc: float


class DocumentTotals(NamedTuple):
    total_ht: float
    total_tva: float
    total_ttc: float


def tax_rate(rate: Optional[float], default: float = 20.0) -> float:
    # 0 est un taux valide (exonéré) : seul un taux absent prend le défaut
    return default if rate is None else float(rate)


def price_excl_tax(price_incl_tax: float, tax_rate: float) -> float:
    return price_incl_tax / (1 + tax_rate / 100)


def compute_line_totals(quantity: float, unit_price_excl_tax: float, tax_rate: float, discount: float = 0.0) -> LineTotals:
    """Totaux d'une ligne. Les arguments sont supposés déjà validés (>= 0)."""
    total_ht = max(0.0, round2(quantity * unit_price_excl_tax - discount))
    total_tva = round2(total_ht * tax_rate / 100)
    total_ttc = round2(total_ht + total_tva)
    return LineTotals(total_ht, total_tva, total_ttc)


def sum_totals(lines: Iterable[object], global_discount: float = 0.0) -> DocumentTotals:
    """Somme des snapshots de lignes ; la remise globale s'applique après TVA."""
    total_ht = 0.0
    total_tva = 0.0
    for ln in lines:
        total_ht += float(getattr(ln, "total_ht", 0) or 0)
        total_tva += float(getattr(ln, "total_tva", 0) or 0)
    total_ht = round2(total_ht)
    total_tva = round2(total_tva)
    return DocumentTotals(total_ht, total_tva, round2(total_ht + total_tva - (global_discount or 0)))
