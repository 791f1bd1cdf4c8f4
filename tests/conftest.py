from datetime import datetime, timezone

import pytest

from sajitech.config import BusinessRules
from sajitech.models.client import Client, Supplier
from sajitech.models.fleet import Driver, Vehicle
from sajitech.models.product import Product, Service
from sajitech.models.state import AppState


@pytest.fixture
def now():
    return datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def rules():
    return BusinessRules()


@pytest.fixture
def state():
    st = AppState.initial()
    st.clients.append(Client(id="CLI-1", name="Atlas Bureautique", city="Rabat"))
    st.suppliers.append(Supplier(id="SUP-1", name="Maghreb Distribution"))
    st.products.extend([
        # 120 TTC à 20% => 100 HT
        Product(id="PRD-1", name="Routeur", price=120.0, cost=100.0, stock_qty=10, min_stock=2, tva=20),
        Product(id="PRD-2", name="Câble RJ45", price=11.0, cost=5.0, stock_qty=0, min_stock=1, tva=10),
    ])
    st.services.append(Service(id="SRV-1", name="Installation", price_ht=500.0, tva_rate=20))
    st.drivers.append(Driver(id="DRV-1", name="Youssef"))
    st.vehicles.append(Vehicle(id="VEH-1", plate="12345-A-6", current_km=1000))
    return st
