"""Exceptions métier et de persistance."""
from __future__ import annotations


class ErpError(ValueError):
    """Base de toutes les erreurs remontées à l'interface."""


# ---------- Validation (rejetées avant toute mutation) ---------- #

class EmptyDocument(ErpError):
    pass


class MissingParty(ErpError):
    pass


class AlreadyValidated(ErpError):
    pass


class InvalidTransition(ErpError):
    pass


class MissingReason(ErpError):
    pass


class NotFound(ErpError):
    pass


class StockUnavailable(ErpError):
    pass


class DiscountNotAllowed(ErpError):
    pass


# ---------- Persistance ---------- #

class StorageError(ErpError):
    pass


class StaleDocument(StorageError):
    def __init__(self, expected: int, found: int):
        super().__init__(f"state document changed on disk (expected revision {expected}, found {found})")
        self.expected = expected
        self.found = found
