"""Numérotation des documents : PREFIX-AAAA-NNNNNN, remise à 1 chaque année.

Un seul écrivain est supposé : le compteur est lu, utilisé puis réécrit dans
le même appel, sans verrou ni détection de conflit. Deux onglets (ou
processus) qui valident en parallèle peuvent émettre le même numéro.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from sajitech.models.common import utcnow
from sajitech.models.state import CompanySettings, SequenceCounter

INDEX_WIDTH = 6


def format_ref(prefix: str, year: int, index: int) -> str:
    return f"{prefix}-{year}-{index:0{INDEX_WIDTH}d}"


def next_ref(counter: Optional[SequenceCounter], current_year: int, prefix: str) -> Tuple[str, SequenceCounter]:
    index = 1
    if counter is not None and counter.year == current_year:
        index = max(1, counter.next_index)
    return format_ref(prefix, current_year, index), SequenceCounter(year=current_year, next_index=index + 1)


def issue_ref(settings: CompanySettings, prefix: str, now: Optional[datetime] = None) -> str:
    """Émet le prochain numéro et persiste le compteur dans les settings."""
    year = (now or utcnow()).year
    number, counter = next_ref(settings.sequences.get(prefix), year, prefix)
    settings.sequences[prefix] = counter
    return number
