from datetime import timedelta

import pytest

from sajitech.models.client import Client
from sajitech.models.fleet import FuelLog, Mission, MissionStatus
from sajitech.models.invoice import Invoice, InvoiceStatus
from sajitech.services.scoring import (
    ClientSegment, client_segments, client_stats, driver_score, refresh_driver_scores, top_clients,
)


def _mission(status, start=1000, end=None, driver_id="DRV-1"):
    return Mission(number="MS-2026-000001", vehicle_id="VEH-1", driver_id=driver_id,
                   status=status, start_km=start, end_km=end)


def _validated(client_id, ttc, when):
    return Invoice(client_id=client_id, status=InvoiceStatus.VALIDATED, validated_at=when,
                   created_at=when, total_ttc=ttc)


def test_driver_without_completed_mission_gets_default():
    assert driver_score("DRV-1", [], []) == 70
    assert driver_score("DRV-1", [_mission(MissionStatus.PLANNED)], []) == 70


def test_driver_score_mixes_trips_fuel_and_km():
    missions = [_mission(MissionStatus.COMPLETED, 1000, 1100), _mission(MissionStatus.PLANNED)]
    fuel = [FuelLog(vehicle_id="VEH-1", driver_id="DRV-1", liters=8)]
    # trajets 50%, 8 L/100km => carburant 100, km 100
    assert driver_score("DRV-1", missions, fuel) == 80


def test_driver_score_stays_within_bounds():
    missions = [_mission(MissionStatus.COMPLETED, 0, 10)]
    fuel = [FuelLog(vehicle_id="VEH-1", driver_id="DRV-1", liters=500)]
    score = driver_score("DRV-1", missions, fuel)
    assert 0 <= score <= 100
    assert score == 70


def test_other_drivers_are_ignored():
    missions = [_mission(MissionStatus.COMPLETED, 0, 100, driver_id="DRV-2")]
    assert driver_score("DRV-1", missions, []) == 70


def test_refresh_driver_scores(state):
    state.missions.append(_mission(MissionStatus.COMPLETED, 1000, 1100))
    state.fuel_logs.append(FuelLog(vehicle_id="VEH-1", driver_id="DRV-1", liters=8))
    assert refresh_driver_scores(state) == {"DRV-1": 100}
    assert state.driver("DRV-1").smart_score == 100


def test_vip_and_gold_segments(now):
    recent = now - timedelta(days=5)
    vip = Client(id="C-VIP", name="VIP", created_at=now - timedelta(days=400))
    gold = Client(id="C-GOLD", name="Gold", created_at=now - timedelta(days=400))
    invoices = [_validated("C-VIP", 120000, recent), _validated("C-GOLD", 40000, recent)]

    s = client_stats(vip, invoices, now)
    assert s.total_revenue == 120000
    assert s.order_count == 1
    assert s.score == 1260
    assert s.segment == ClientSegment.VIP
    assert client_stats(gold, invoices, now).segment == ClientSegment.GOLD


def test_inactive_client_needs_reactivation(now):
    old = Client(id="C-OLD", name="Ancien", created_at=now - timedelta(days=200))
    s = client_stats(old, [], now)
    assert s.days_since_last == 200
    assert s.segment == ClientSegment.NEEDS_REACTIVATION


def test_new_client_is_standard(now):
    new = Client(id="C-NEW", name="Nouveau", created_at=now - timedelta(days=3))
    s = client_stats(new, [], now)
    assert s.score == 0
    assert s.segment == ClientSegment.STANDARD


def test_cancelled_invoices_do_not_count(now):
    c = Client(id="C-1", name="X", created_at=now - timedelta(days=10))
    cancelled = Invoice(client_id="C-1", status=InvoiceStatus.CANCELLED, validated_at=now,
                        cancelled_at=now, cancellation_reason="erreur", total_ttc=500000)
    s = client_stats(c, [cancelled], now)
    assert s.total_revenue == 0
    assert s.segment == ClientSegment.STANDARD


def test_top_clients_sorted_by_score(state, now):
    recent = now - timedelta(days=1)
    state.invoices.extend([_validated("CLI-1", 1000, recent), _validated("c1", 50000, recent)])
    ranked = top_clients(state, n=2, now=now)
    assert [s.client_id for s in ranked] == ["c1", "CLI-1"]
    assert set(client_segments(state, now)) == {"c1", "CLI-1"}


def _sweep_cases():
    statuses = list(MissionStatus)
    cases = []
    for liters in (0, 0.01, 8, 80, 10_000, 1e9):
        for start, end in ((1000, 1000), (1000, 900), (0, 1), (0, 100_000), (500, None)):
            for n_status in range(len(statuses)):
                cases.append((liters, start, end, statuses[: n_status + 1]))
    return cases


@pytest.mark.parametrize("liters,start,end,statuses", _sweep_cases())
def test_driver_score_always_within_bounds(liters, start, end, statuses):
    missions = [_mission(s, start, end) for s in statuses]
    fuel = [FuelLog(vehicle_id="VEH-1", driver_id="DRV-1", liters=liters)] if liters else []
    score = driver_score("DRV-1", missions, fuel)
    assert isinstance(score, int)
    assert 0 <= score <= 100
