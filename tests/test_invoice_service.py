import pytest

from sajitech.errors import (
    AlreadyValidated, EmptyDocument, ErpError, InvalidTransition, MissingParty, MissingReason, NotFound,
)
from sajitech.models.invoice import DRAFT_NUMBER, InvoiceStatus
from sajitech.models.product import ItemType, Product, Service
from sajitech.models.stock import MovementType
from sajitech.services.invoice_service import InvoiceService, recompute_invoice_totals, recompute_line


@pytest.fixture
def svc(state, rules):
    return InvoiceService(state, rules)


def _draft_with_routers(svc, state, qty=3, client_id="CLI-1"):
    inv = svc.new_draft(client_id=client_id)
    line = svc.add_line(inv, state.product("PRD-1"))
    svc.update_line(inv, line.id, {"quantity": qty})
    return inv


def test_add_line_derives_price_excl_tax_from_catalog(svc, state):
    inv = svc.new_draft(client_id="CLI-1")
    line = svc.add_line(inv, state.product("PRD-1"))
    assert line.price_ht == 100.0
    assert line.tva_rate == 20
    assert line.item_type == ItemType.PRODUCT
    assert (inv.total_ht, inv.total_tva, inv.total_ttc) == (100.0, 20.0, 120.0)


def test_add_service_line(svc, state):
    inv = svc.new_draft(client_id="CLI-1")
    line = svc.add_line(inv, state.service("SRV-1"))
    assert line.item_type == ItemType.SERVICE
    assert line.price_ht == 500.0
    assert inv.total_ttc == 600.0


def test_update_line_recomputes_totals(svc, state):
    inv = _draft_with_routers(svc, state, qty=3)
    assert (inv.total_ht, inv.total_tva, inv.total_ttc) == (300.0, 60.0, 360.0)


def test_line_discount_above_gross_is_clamped(svc, state):
    inv = _draft_with_routers(svc, state, qty=3)
    line = inv.lines[0]
    svc.update_line(inv, line.id, {"discount": 500})
    assert (line.total_ht, line.total_tva, line.total_ttc) == (0.0, 0.0, 0.0)
    assert inv.total_ttc == 0.0


def test_update_line_rejects_negative_and_unknown_fields(svc, state):
    inv = _draft_with_routers(svc, state)
    line_id = inv.lines[0].id
    with pytest.raises(ErpError):
        svc.update_line(inv, line_id, {"quantity": -1})
    with pytest.raises(ErpError):
        svc.update_line(inv, line_id, {"total_ht": 1})
    with pytest.raises(NotFound):
        svc.update_line(inv, "nope", {"quantity": 1})
    assert inv.lines[0].quantity == 3


def test_global_discount_is_applied_after_tax(svc, state):
    inv = _draft_with_routers(svc, state, qty=3)
    svc.set_global_discount(inv, 10)
    assert inv.total_ht == 300.0
    assert inv.total_tva == 60.0
    assert inv.total_ttc == 350.0


def test_remove_line(svc, state):
    inv = _draft_with_routers(svc, state)
    svc.remove_line(inv, inv.lines[0].id)
    assert inv.lines == []
    assert inv.total_ttc == 0.0


def test_validate_numbers_and_decrements_stock(svc, state, now):
    inv = _draft_with_routers(svc, state, qty=3)
    svc.validate(inv, now=now)

    assert inv.status == InvoiceStatus.VALIDATED
    assert inv.number == "SJ-2026-000001"
    assert inv.validated_at == now
    assert state.product("PRD-1").stock_qty == 7
    assert state.invoice(inv.id) is inv

    sales = [m for m in state.stock_movements if m.type == MovementType.SALE]
    assert len(sales) == 1
    assert sales[0].quantity == 3
    assert sales[0].reference == inv.id
    assert state.client_actions[0].client_id == "CLI-1"
    assert state.client_actions[0].amount == 360.0
    assert state.audit_logs[0].action == "Validate"


def test_validate_is_not_repeatable(svc, state, now):
    inv = _draft_with_routers(svc, state, qty=3)
    svc.validate(inv, now=now)
    with pytest.raises(AlreadyValidated):
        svc.validate(inv, now=now)
    assert state.product("PRD-1").stock_qty == 7
    assert inv.number == "SJ-2026-000001"
    assert state.settings.sequences["SJ"].next_index == 2
    assert len(state.stock_movements) == 1


def test_stale_draft_copy_cannot_be_validated_twice(svc, state, now):
    inv = _draft_with_routers(svc, state, qty=2)
    svc.save_draft(inv)
    stale = inv.model_copy(deep=True)
    svc.validate(inv, now=now)
    with pytest.raises(AlreadyValidated):
        svc.validate(stale, now=now)
    assert state.product("PRD-1").stock_qty == 8


def test_validate_allows_negative_stock(svc, state, now):
    inv = _draft_with_routers(svc, state, qty=12)
    svc.validate(inv, now=now)
    assert state.product("PRD-1").stock_qty == -2


def test_service_lines_do_not_touch_stock(svc, state, now):
    inv = svc.new_draft(client_id="CLI-1")
    svc.add_line(inv, state.service("SRV-1"))
    svc.validate(inv, now=now)
    assert state.stock_movements == []


def test_validate_rejects_empty_invoice(svc, state, now):
    inv = svc.new_draft()
    with pytest.raises(EmptyDocument):
        svc.validate(inv, now=now)
    assert inv.status == InvoiceStatus.DRAFT
    assert inv.number == DRAFT_NUMBER
    assert "SJ" not in state.settings.sequences


def test_validate_requires_client(svc, state, now):
    inv = _draft_with_routers(svc, state, client_id="")
    with pytest.raises(MissingParty):
        svc.validate(inv, now=now)
    assert state.product("PRD-1").stock_qty == 10
    assert state.invoices == []


def test_validated_invoice_lines_are_frozen(svc, state, now):
    inv = _draft_with_routers(svc, state)
    svc.validate(inv, now=now)
    with pytest.raises(InvalidTransition):
        svc.add_line(inv, state.product("PRD-1"))
    with pytest.raises(InvalidTransition):
        svc.set_global_discount(inv, 5)


def test_save_draft_requires_client(svc, state):
    inv = _draft_with_routers(svc, state, client_id="")
    with pytest.raises(MissingParty):
        svc.save_draft(inv)


def test_save_and_delete_draft(svc, state):
    inv = _draft_with_routers(svc, state)
    svc.save_draft(inv)
    svc.save_draft(inv)
    assert len(state.invoices) == 1
    svc.delete_draft(inv.id)
    assert state.invoices == []


def test_cannot_delete_validated_invoice(svc, state, now):
    inv = _draft_with_routers(svc, state)
    svc.validate(inv, now=now)
    with pytest.raises(InvalidTransition):
        svc.delete_draft(inv.id)


def test_cancel_requires_reason(svc, state, now):
    inv = _draft_with_routers(svc, state)
    svc.validate(inv, now=now)
    with pytest.raises(MissingReason):
        svc.cancel(inv.id, "   ")
    assert inv.status == InvoiceStatus.VALIDATED

    svc.cancel(inv.id, "Erreur de client", now=now)
    assert inv.status == InvoiceStatus.CANCELLED
    assert inv.cancellation_reason == "Erreur de client"
    assert inv.cancelled_at == now


def test_cancel_only_from_validated(svc, state, now):
    inv = _draft_with_routers(svc, state)
    svc.save_draft(inv)
    with pytest.raises(InvalidTransition):
        svc.cancel(inv.id, "doublon")
    svc.validate(inv, now=now)
    svc.cancel(inv.id, "doublon")
    with pytest.raises(InvalidTransition):
        svc.cancel(inv.id, "encore")
    assert inv.cancellation_reason == "doublon"


def test_zero_rate_product_stays_tax_exempt(svc, state):
    state.products.append(Product(id="PRD-0", name="Livre", price=100.0, tva=0.0, stock_qty=5))
    inv = svc.new_draft(client_id="CLI-1")
    line = svc.add_line(inv, state.product("PRD-0"))
    assert line.tva_rate == 0.0
    assert line.price_ht == 100.0
    assert (inv.total_ht, inv.total_tva, inv.total_ttc) == (100.0, 0.0, 100.0)


def test_unset_rate_falls_back_to_default(svc, state):
    state.services.append(Service(id="SRV-0", name="Audit", price_ht=200.0, tva_rate=None))
    inv = svc.new_draft(client_id="CLI-1")
    line = svc.add_line(inv, state.service("SRV-0"))
    assert line.tva_rate == 20.0
    assert inv.total_ttc == 240.0


def test_recomputing_totals_is_stable(svc, state):
    inv = _draft_with_routers(svc, state, qty=3)
    svc.add_line(inv, state.service("SRV-1"))
    svc.update_line(inv, inv.lines[0].id, {"discount": 12.345, "price_ht": 99.99})
    svc.set_global_discount(inv, 7.5)
    first = recompute_invoice_totals(inv.lines, inv.global_discount)
    lines_before = [ln.model_dump() for ln in inv.lines]
    for ln in inv.lines:
        recompute_line(ln)
    second = recompute_invoice_totals(inv.lines, inv.global_discount)
    assert first == second
    assert [ln.model_dump() for ln in inv.lines] == lines_before
    assert (inv.total_ht, inv.total_tva, inv.total_ttc) == tuple(second)


def test_update_line_validates_field_types(svc, state):
    inv = _draft_with_routers(svc, state)
    line = inv.lines[0]
    with pytest.raises(ErpError):
        svc.update_line(inv, line.id, {"description": None})
    with pytest.raises(ErpError):
        svc.update_line(inv, line.id, {"quantity": "beaucoup"})
    assert line.description == "Routeur"
    svc.update_line(inv, line.id, {"quantity": "2"})
    assert line.quantity == 2.0
    assert inv.total_ht == 200.0
