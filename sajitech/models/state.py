from __future__ import annotations
from typing import Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .client import Client, ClientAction, ClientType, Supplier
from .expense import Expense
from .fleet import Driver, FuelLog, Mission, Vehicle
from .invoice import Invoice
from .product import Category, Product, Service
from .purchase import Purchase, PurchasePriceLog
from .stock import Sale, StockMovement
from .support import AppNotification, AuditLog, Ticket

SCHEMA_VERSION = 2
WALK_IN_CLIENT_ID = "c1"

T = TypeVar("T", bound=BaseModel)


class SequenceCounter(BaseModel):
    year: int
    next_index: int = 1


class CompanySettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    company_name: str = "SAJITECH ENTERPRISE"
    ice: str = "000000000000000"
    tax_id: str = "00000000"  # IF
    rc: str = "000000"
    address: str = "Casablanca, Maroc"
    phone: str = "+212 5XX XX XX XX"
    email: str = "contact@sajitech.ma"
    logo: str = ""
    signature: str = ""
    footer_message: str = "Merci de votre confiance."
    language: str = "FR"
    # un compteur par préfixe de document (SJ, BA, MS, TCK)
    sequences: Dict[str, SequenceCounter] = Field(default_factory=dict)


def _walk_in_client() -> List[Client]:
    return [Client(id=WALK_IN_CLIENT_ID, name="Client de Passage", city="Casablanca", type=ClientType.PARTICULIER)]


class AppState(BaseModel):
    """Document unique de l'application : une collection par entité + settings."""

    model_config = ConfigDict(extra="ignore")  # tolère d'anciennes clés dans le JSON

    schema_version: int = SCHEMA_VERSION
    revision: int = 0

    clients: List[Client] = Field(default_factory=list)
    client_actions: List[ClientAction] = Field(default_factory=list)
    suppliers: List[Supplier] = Field(default_factory=list)

    categories: List[Category] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)

    invoices: List[Invoice] = Field(default_factory=list)
    purchases: List[Purchase] = Field(default_factory=list)
    purchase_price_history: List[PurchasePriceLog] = Field(default_factory=list)
    stock_movements: List[StockMovement] = Field(default_factory=list)
    sales: List[Sale] = Field(default_factory=list)
    expenses: List[Expense] = Field(default_factory=list)

    drivers: List[Driver] = Field(default_factory=list)
    vehicles: List[Vehicle] = Field(default_factory=list)
    missions: List[Mission] = Field(default_factory=list)
    fuel_logs: List[FuelLog] = Field(default_factory=list)

    tickets: List[Ticket] = Field(default_factory=list)
    notifications: List[AppNotification] = Field(default_factory=list)
    audit_logs: List[AuditLog] = Field(default_factory=list)

    settings: CompanySettings = Field(default_factory=CompanySettings)

    @classmethod
    def initial(cls) -> "AppState":
        """Document de départ (client de passage pour la caisse)."""
        return cls(clients=_walk_in_client())

    # ---------- Recherches ---------- #

    @staticmethod
    def _find(items: Sequence[T], obj_id: Optional[str]) -> Optional[T]:
        if not obj_id:
            return None
        for it in items:
            if getattr(it, "id", None) == obj_id:
                return it
        return None

    def product(self, product_id: Optional[str]) -> Optional[Product]:
        return self._find(self.products, product_id)

    def service(self, service_id: Optional[str]) -> Optional[Service]:
        return self._find(self.services, service_id)

    def client(self, client_id: Optional[str]) -> Optional[Client]:
        return self._find(self.clients, client_id)

    def supplier(self, supplier_id: Optional[str]) -> Optional[Supplier]:
        return self._find(self.suppliers, supplier_id)

    def invoice(self, invoice_id: Optional[str]) -> Optional[Invoice]:
        return self._find(self.invoices, invoice_id)

    def purchase(self, purchase_id: Optional[str]) -> Optional[Purchase]:
        return self._find(self.purchases, purchase_id)

    def driver(self, driver_id: Optional[str]) -> Optional[Driver]:
        return self._find(self.drivers, driver_id)

    def vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        return self._find(self.vehicles, vehicle_id)

    def mission(self, mission_id: Optional[str]) -> Optional[Mission]:
        return self._find(self.missions, mission_id)

    def ticket(self, ticket_id: Optional[str]) -> Optional[Ticket]:
        return self._find(self.tickets, ticket_id)
