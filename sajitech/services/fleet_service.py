from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sajitech.config import BusinessRules
from sajitech.errors import ErpError, InvalidTransition, NotFound
from sajitech.models.common import utcnow
from sajitech.models.fleet import Driver, FuelLog, Mission, MissionStatus, Vehicle
from sajitech.models.state import AppState
from sajitech.services.audit_service import AuditService
from sajitech.services.scoring import driver_score
from sajitech.services.sequence import issue_ref

logger = logging.getLogger(__name__)


class FleetService:
    """Missions, carburant et score chauffeur."""

    def __init__(self, state: AppState, rules: Optional[BusinessRules] = None):
        self.state = state
        self.rules = rules or BusinessRules()
        self.audit = AuditService(state, self.rules)

    def _vehicle(self, vehicle_id: str) -> Vehicle:
        v = self.state.vehicle(vehicle_id)
        if v is None:
            raise NotFound(f"vehicle {vehicle_id} not found")
        return v

    def _driver(self, driver_id: str) -> Driver:
        d = self.state.driver(driver_id)
        if d is None:
            raise NotFound(f"driver {driver_id} not found")
        return d

    def _mission(self, mission_id: str) -> Mission:
        m = self.state.mission(mission_id)
        if m is None:
            raise NotFound(f"mission {mission_id} not found")
        return m

    # ---------- Missions ---------- #

    def plan_mission(self, vehicle_id: str, driver_id: str, destination: str = "",
                     user_id: str = "admin", now: Optional[datetime] = None) -> Mission:
        vehicle = self._vehicle(vehicle_id)
        self._driver(driver_id)
        now = now or utcnow()
        number = issue_ref(self.state.settings, self.rules.prefixes.mission, now)
        mission = Mission(number=number, vehicle_id=vehicle.id, driver_id=driver_id,
                          start_km=vehicle.current_km, destination=destination, start_date=now, created_at=now)
        self.state.missions.insert(0, mission)
        self.audit.log_audit(user_id, "Logistics", "Create", f"Missions: {number}")
        return mission

    def start_mission(self, mission_id: str) -> Mission:
        m = self._mission(mission_id)
        if m.status != MissionStatus.PLANNED:
            raise InvalidTransition(f"mission {m.number} is {m.status.value}")
        m.status = MissionStatus.ONGOING
        return m

    def complete_mission(self, mission_id: str, end_km: float) -> Mission:
        m = self._mission(mission_id)
        if m.status not in (MissionStatus.PLANNED, MissionStatus.ONGOING):
            raise InvalidTransition(f"mission {m.number} is {m.status.value}")
        if end_km < m.start_km:
            raise ErpError(f"end km {end_km} is below start km {m.start_km}")
        m.end_km = end_km
        m.status = MissionStatus.COMPLETED
        vehicle = self.state.vehicle(m.vehicle_id)
        if vehicle is not None and end_km > vehicle.current_km:
            vehicle.current_km = end_km
        self.refresh_driver(m.driver_id)
        logger.info("Mission %s completed (%s km)", m.number, m.distance_km)
        return m

    def cancel_mission(self, mission_id: str) -> Mission:
        m = self._mission(mission_id)
        if m.status == MissionStatus.COMPLETED:
            raise InvalidTransition(f"mission {m.number} is already completed")
        m.status = MissionStatus.CANCELLED
        return m

    def missions_for(self, driver_id: str) -> List[Mission]:
        return [m for m in self.state.missions if m.driver_id == driver_id]

    # ---------- Carburant ---------- #

    def log_fuel(self, vehicle_id: str, driver_id: str, liters: float, total_amount: float = 0.0,
                 odometer: Optional[float] = None, now: Optional[datetime] = None) -> FuelLog:
        if liters <= 0:
            raise ErpError("liters must be > 0")
        vehicle = self._vehicle(vehicle_id)
        self._driver(driver_id)
        log = FuelLog(vehicle_id=vehicle_id, driver_id=driver_id, liters=liters, total_amount=total_amount,
                      odometer=odometer if odometer is not None else vehicle.current_km, date=now or utcnow())
        self.state.fuel_logs.insert(0, log)
        self.refresh_driver(driver_id)
        return log

    def refresh_driver(self, driver_id: str) -> int:
        d = self._driver(driver_id)
        d.smart_score = driver_score(d.id, self.state.missions, self.state.fuel_logs, self.rules.scoring)
        return d.smart_score
