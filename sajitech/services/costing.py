"""Prix Moyen Pondéré (PMP / WAC)."""
from __future__ import annotations

from typing import Tuple

from .ledger import round4


def weighted_average_cost(existing_qty: float, existing_cost: float, received_qty: float, unit_cost: float) -> Tuple[float, float]:
    """
    ((Q_exist * PMP_exist) + (Q_recu * P_recu)) / (Q_exist + Q_recu)

    Retourne (nouvelle quantité, nouveau PMP arrondi à 4 décimales).
    Un stock négatif (ventes en rupture) n'a pas de valeur : il est compté
    dans la quantité mais pas dans la base de coût.
    """
    valued_qty = max(0.0, existing_qty)
    existing_value = valued_qty * existing_cost
    incoming_value = received_qty * unit_cost
    new_qty = existing_qty + received_qty
    basis_qty = valued_qty + received_qty
    new_cost = (existing_value + incoming_value) / basis_qty if basis_qty > 0 else unit_cost
    return new_qty, round4(new_cost)
