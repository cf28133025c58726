"""
Budget ledger tests - quotation entry, approval, variance, issued-item protection
"""
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from finance_core.errors import AggregationError, ConflictError, NotFoundError, ValidationError
from finance_core.models.budget import BudgetItemStatus, SupplierBudgetItem
from finance_core.schemas import BudgetItemCreate, BudgetItemUpdate, ExtractedQuotation
from finance_core.services.budget_ledger import BudgetLedger, apply_variance
from finance_core.services.budget_refresh import wired_ledger
from finance_core.services.summary_aggregator import SummaryAggregator


def _quote(supplier_id, amount="50000", **kwargs):
    return BudgetItemCreate(supplier_id=supplier_id, trade_type="Electrical", quoted_amount=amount, **kwargs)


async def _create(db_session, seed_data, principal, **kwargs):
    ledger = BudgetLedger(db_session)
    return await ledger.create(
        seed_data["project"].id, _quote(seed_data["supplier"].id, **kwargs), principal
    )


# ===================== CREATE =====================


async def test_create_manual_quotation(db_session, seed_data, principal):
    item = await _create(
        db_session, seed_data, principal,
        quoted_amount_before_tax="45872", quoted_tax_amount="4128", quotation_reference="Q-881",
    )

    assert item.id is not None
    assert item.supplier_name == "Acme Builders"
    assert item.quoted_amount == Decimal("50000.00")
    assert item.actual_cost == Decimal("0.00")
    assert item.variance == Decimal("50000.00")
    assert item.variance_percentage == Decimal("100.00")
    assert item.status == BudgetItemStatus.QUOTED
    assert item.is_approved is False
    assert item.po_issued is False
    assert item.created_by_id == principal.id


async def test_create_defaults_description(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    assert item.description == "Electrical - Acme Builders"


async def test_create_unknown_project(db_session, seed_data, principal):
    with pytest.raises(NotFoundError):
        await BudgetLedger(db_session).create(9999, _quote(seed_data["supplier"].id), principal)


async def test_create_unknown_supplier(db_session, seed_data, principal):
    with pytest.raises(NotFoundError):
        await BudgetLedger(db_session).create(seed_data["project"].id, _quote(9999), principal)


def test_negative_quote_rejected_at_boundary():
    with pytest.raises(ValueError):
        BudgetItemCreate(supplier_id=1, trade_type="Civil", quoted_amount="-10")


def test_amount_strings_are_parsed_to_cents():
    data = BudgetItemCreate(supplier_id=1, trade_type="Civil", quoted_amount="1234.565")
    assert data.quoted_amount == Decimal("1234.57")


# ===================== EXTRACTION =====================


async def test_confident_extraction_is_quoted(db_session, seed_data, principal):
    extraction = ExtractedQuotation(
        supplier_id=seed_data["supplier"].id,
        trade_type="Plumbing",
        total_amount="21800",
        amount_before_tax="20000",
        tax_amount="1800",
        confidence=0.92,
        file_path="uploads/quotes/q1.pdf",
        file_name="q1.pdf",
        raw={"vendor": "Acme Builders"},
    )
    item = await BudgetLedger(db_session).create_from_extraction(seed_data["project"].id, extraction, principal)

    assert item.extracted_by_ai is True
    assert item.needs_review is False
    assert item.status == BudgetItemStatus.QUOTED
    assert item.quotation_file_name == "q1.pdf"
    assert item.ai_extracted_data == {"vendor": "Acme Builders"}


async def test_low_confidence_extraction_needs_review(db_session, seed_data, principal):
    extraction = ExtractedQuotation(
        supplier_id=seed_data["supplier"].id, trade_type="Plumbing", total_amount="21800", confidence=0.4,
    )
    item = await BudgetLedger(db_session).create_from_extraction(seed_data["project"].id, extraction, principal)

    assert item.needs_review is True
    assert item.status == BudgetItemStatus.PENDING_APPROVAL


async def test_zero_total_extraction_needs_review(db_session, seed_data, principal):
    extraction = ExtractedQuotation(
        supplier_id=seed_data["supplier"].id, trade_type="Plumbing", total_amount="0", confidence=0.99,
    )
    item = await BudgetLedger(db_session).create_from_extraction(seed_data["project"].id, extraction, principal)
    assert item.needs_review is True


def test_confidence_out_of_range_rejected():
    with pytest.raises(ValueError):
        ExtractedQuotation(supplier_id=1, trade_type="Plumbing", total_amount="10", confidence=1.5)


# ===================== UPDATE / ACTUAL COST =====================


async def test_record_actual_cost_recomputes_variance(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal, amount="40000")
    item = await BudgetLedger(db_session).record_actual_cost(
        seed_data["project"].id, item.id, Decimal("42000"), principal
    )

    assert item.actual_cost == Decimal("42000.00")
    assert item.variance == Decimal("-2000.00")
    assert item.variance_percentage == Decimal("-5.00")


def test_variance_percentage_fits_its_column():
    # one-cent quote against the largest storable actual cost
    item = SupplierBudgetItem(quoted_amount=Decimal("0.01"), actual_cost=Decimal("9999999999999.99"))
    apply_variance(item)

    value = item.variance_percentage
    column = SupplierBudgetItem.__table__.c.variance_percentage.type
    assert value < 0
    assert len(value.as_tuple().digits) + value.as_tuple().exponent <= column.precision - column.scale


async def test_update_cannot_clear_quote(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    with pytest.raises(ValidationError):
        await BudgetLedger(db_session).update(
            seed_data["project"].id, item.id, BudgetItemUpdate(quoted_amount=None), principal
        )


async def test_update_cannot_clear_trade_type(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    ledger = BudgetLedger(db_session)
    with pytest.raises(ValidationError, match="trade_type"):
        await ledger.update(seed_data["project"].id, item.id, BudgetItemUpdate(trade_type=None), principal)

    kept = await ledger.get_item(seed_data["project"].id, item.id)
    assert kept.trade_type == "Electrical"


async def test_update_with_is_approved_routes_through_approval(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    item = await BudgetLedger(db_session).update(
        seed_data["project"].id, item.id, BudgetItemUpdate(is_approved=True, notes="ok"), principal
    )

    assert item.is_approved is True
    assert item.status == BudgetItemStatus.APPROVED
    assert item.approved_by_id == principal.id
    assert item.notes == "ok"


async def test_item_from_another_project_is_not_found(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    with pytest.raises(NotFoundError):
        await BudgetLedger(db_session).get_item(seed_data["project"].id + 1, item.id)


# ===================== APPROVE / REJECT =====================


async def test_approve_sets_approver(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal)
    item = await BudgetLedger(db_session).approve(seed_data["project"].id, item.id, principal)

    assert item.is_approved is True
    assert item.status == BudgetItemStatus.APPROVED
    assert item.approved_at is not None
    assert item.needs_review is False


async def test_approve_twice_is_noop(db_session, seed_data, principal):
    ledger = BudgetLedger(db_session)
    item = await _create(db_session, seed_data, principal)
    first = await ledger.approve(seed_data["project"].id, item.id, principal)
    approved_at = first.approved_at

    second = await ledger.approve(seed_data["project"].id, item.id, principal)
    assert second.approved_at == approved_at


async def test_approve_zero_quote_rejected(db_session, seed_data, principal):
    item = await _create(db_session, seed_data, principal, amount="0")
    with pytest.raises(ValidationError):
        await BudgetLedger(db_session).approve(seed_data["project"].id, item.id, principal)


async def test_rejected_item_cannot_be_approved(db_session, seed_data, principal):
    ledger = BudgetLedger(db_session)
    item = await _create(db_session, seed_data, principal)
    item = await ledger.reject(seed_data["project"].id, item.id, principal)
    assert item.status == BudgetItemStatus.REJECTED

    with pytest.raises(ConflictError):
        await ledger.approve(seed_data["project"].id, item.id, principal)


async def test_approved_item_cannot_be_rejected(db_session, seed_data, principal):
    ledger = BudgetLedger(db_session)
    item = await _create(db_session, seed_data, principal)
    await ledger.approve(seed_data["project"].id, item.id, principal)

    with pytest.raises(ConflictError):
        await ledger.reject(seed_data["project"].id, item.id, principal)


# ===================== PO ISSUANCE LINK / DELETE =====================


class TestIssuedItems:

    async def _issued(self, db_session, seed_data, principal):
        ledger = BudgetLedger(db_session)
        item = await _create(db_session, seed_data, principal)
        item = await ledger.approve(seed_data["project"].id, item.id, principal)
        # Stand-in PO id; the issuer tests cover the real header
        await ledger.record_po_issuance(item, 4242, item.approved_at)
        await db_session.commit()
        return ledger, item

    async def test_record_po_issuance_marks_item(self, db_session, seed_data, principal):
        _, item = await self._issued(db_session, seed_data, principal)
        assert item.po_issued is True
        assert item.purchase_order_id == 4242
        assert item.status == BudgetItemStatus.PO_ISSUED

    async def test_second_issuance_conflicts(self, db_session, seed_data, principal):
        ledger, item = await self._issued(db_session, seed_data, principal)
        with pytest.raises(ConflictError):
            await ledger.record_po_issuance(item, 4243, item.approved_at)

    async def test_stale_read_cannot_link_a_second_po(self, db_session, seed_data, principal):
        ledger, item = await self._issued(db_session, seed_data, principal)
        project_id, item_id = seed_data["project"].id, item.id
        # as seen by a session that loaded the item before the first PO committed
        set_committed_value(item, "po_issued", False)

        with pytest.raises(ConflictError):
            await ledger.record_po_issuance(item, 4243, item.approved_at)
        await db_session.rollback()

        kept = await ledger.get_item(project_id, item_id)
        assert kept.po_issued is True
        assert kept.purchase_order_id == 4242

    async def test_unapproved_item_cannot_be_linked(self):
        item = SupplierBudgetItem(is_approved=False, po_issued=False)
        with pytest.raises(ValidationError):
            await BudgetLedger(None).record_po_issuance(item, 1, None)

    async def test_delete_issued_item_conflicts_and_keeps_it(self, db_session, seed_data, principal):
        ledger, item = await self._issued(db_session, seed_data, principal)
        with pytest.raises(ConflictError, match="Cannot delete budget item with issued PO"):
            await ledger.delete(seed_data["project"].id, item.id)

        kept = await ledger.get_item(seed_data["project"].id, item.id)
        assert kept.po_issued is True
        assert kept.purchase_order_id == 4242

    async def test_issued_quote_is_locked(self, db_session, seed_data, principal):
        ledger, item = await self._issued(db_session, seed_data, principal)
        with pytest.raises(ConflictError):
            await ledger.update(
                seed_data["project"].id, item.id, BudgetItemUpdate(quoted_amount="60000"), principal
            )

    async def test_issued_item_still_takes_actual_cost(self, db_session, seed_data, principal):
        ledger, item = await self._issued(db_session, seed_data, principal)
        item = await ledger.record_actual_cost(seed_data["project"].id, item.id, Decimal("51000"), principal)
        assert item.variance == Decimal("-1000.00")


async def test_delete_unissued_item(db_session, seed_data, principal):
    ledger = BudgetLedger(db_session)
    item = await _create(db_session, seed_data, principal)
    await ledger.delete(seed_data["project"].id, item.id)
    assert await ledger.list_items(seed_data["project"].id) == []


# ===================== CHANGE NOTIFICATION =====================


async def test_listeners_receive_changed_project(db_session, seed_data, principal):
    seen = []

    async def listener(project_id):
        seen.append(project_id)

    ledger = BudgetLedger(db_session, listeners=[listener])
    await ledger.create(seed_data["project"].id, _quote(seed_data["supplier"].id), principal)
    assert seen == [seed_data["project"].id]


async def test_wired_ledger_keeps_summary_current(db_session, seed_data, principal):
    ledger = wired_ledger(db_session, principal.id)
    await ledger.create(seed_data["project"].id, _quote(seed_data["supplier"].id, amount="30000"), principal)

    summary = await SummaryAggregator(db_session).get(seed_data["project"].id)
    assert summary.total_budget == Decimal("30000.00")
    assert summary.total_suppliers == 1
    assert summary.budget_utilization == Decimal("15.00")


async def test_refresh_failure_keeps_committed_item(db_session, seed_data, principal):
    project_id, supplier_id = seed_data["project"].id, seed_data["supplier"].id

    async def failing_recompute(aggregator, pid, calculated_by=None):
        await aggregator.session.rollback()
        raise AggregationError(pid)

    ledger = wired_ledger(db_session, principal.id)
    with patch.object(SummaryAggregator, "recompute", failing_recompute):
        item = await ledger.create(project_id, _quote(supplier_id), principal)

    assert item.trade_type == "Electrical"
    assert [i.id for i in await ledger.list_items(project_id)] == [item.id]
    assert await SummaryAggregator(db_session).get(project_id) is None
