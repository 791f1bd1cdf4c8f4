from __future__ import annotations
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Optional

from pydantic import BaseModel, Field

from .common import gen_id, utcnow


class VehicleStatus(str, Enum):
    ACTIVE = "Actif"
    MAINTENANCE = "En Maintenance"
    OUT = "Hors Service"


class MissionStatus(str, Enum):
    PLANNED = "Planifiée"
    ONGOING = "En cours"
    COMPLETED = "Terminée"
    CANCELLED = "Annulée"


class DriverStatus(str, Enum):
    ACTIVE = "Actif"
    SUSPENDED = "Suspendu"
    INACTIVE = "Inactif"


class Driver(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "DRV"))
    name: str
    cin: str = ""
    phone: str = ""
    license_expiry: Optional[str] = None
    status: DriverStatus = DriverStatus.ACTIVE
    linked_user_id: Optional[str] = None
    smart_score: Optional[int] = None  # dérivé, recalculé à chaque passage
    contract_type: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class Vehicle(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "VEH"))
    plate: str
    brand: str = ""
    model: str = ""
    current_km: float = 0.0
    status: VehicleStatus = VehicleStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)


class Mission(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "MIS"))
    number: str
    status: MissionStatus = MissionStatus.PLANNED
    start_date: datetime = Field(default_factory=utcnow)
    vehicle_id: str
    driver_id: str
    start_km: float = 0.0
    end_km: Optional[float] = None
    destination: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def distance_km(self) -> float:
        return (self.end_km or 0.0) - self.start_km


class FuelLog(BaseModel):
    id: str = Field(default_factory=partial(gen_id, "FUEL"))
    date: datetime = Field(default_factory=utcnow)
    vehicle_id: str
    driver_id: str
    liters: float
    total_amount: float = 0.0
    odometer: float = 0.0
