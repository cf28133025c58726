"""
Summary aggregator tests - roll-up formulas, idempotence, zero contract value
"""
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from finance_core.errors import AggregationError, NotFoundError
from finance_core.models.budget import ProjectBudgetSummary, SupplierBudgetItem
from finance_core.services.summary_aggregator import SummaryAggregator, compute_summary


def _item(quoted, actual="0", before_tax=None, tax=None, issued=False, quotation_file=None):
    return SupplierBudgetItem(
        quoted_amount=Decimal(quoted),
        quoted_amount_before_tax=Decimal(before_tax) if before_tax is not None else None,
        quoted_tax_amount=Decimal(tax) if tax is not None else None,
        actual_cost=Decimal(actual),
        po_issued=issued,
        quotation_file_path=quotation_file,
    )


async def _add_items(db_session, seed_data, *items):
    for item in items:
        item.project_id = seed_data["project"].id
        item.supplier_id = seed_data["supplier"].id
        item.supplier_name = seed_data["supplier"].name
        item.trade_type = "General"
        item.created_by_id = "user-1"
        db_session.add(item)
    await db_session.commit()


# ===================== FORMULAS =====================


def test_compute_summary_formulas():
    values = compute_summary(
        Decimal("200000"),
        [
            _item("50000", actual="20000", before_tax="45872", tax="4128", issued=True, quotation_file="q1.pdf"),
            _item("30000", actual="31000"),
        ],
    )

    assert values["total_budget"] == Decimal("80000.00")
    assert values["total_budget_before_tax"] == Decimal("75872.00")
    assert values["total_budget_tax_amount"] == Decimal("4128.00")
    assert values["total_actual_cost"] == Decimal("51000.00")
    assert values["estimated_profit"] == Decimal("120000.00")
    assert values["estimated_profit_margin"] == Decimal("60.00")
    assert values["actual_profit"] == Decimal("149000.00")
    assert values["actual_profit_margin"] == Decimal("74.50")
    assert values["budget_utilization"] == Decimal("40.00")
    assert values["cost_utilization"] == Decimal("25.50")
    assert values["total_suppliers"] == 2
    assert values["suppliers_with_quotation"] == 1
    assert values["suppliers_with_po"] == 1


def test_compute_summary_empty_ledger():
    values = compute_summary(Decimal("200000"), [])
    assert values["total_budget"] == Decimal("0.00")
    assert values["estimated_profit"] == Decimal("200000.00")
    assert values["estimated_profit_margin"] == Decimal("100.00")
    assert values["total_suppliers"] == 0


def test_zero_contract_value_ratios_are_zero():
    values = compute_summary(Decimal("0"), [_item("50000", actual="10000")])

    assert values["estimated_profit"] == Decimal("-50000.00")
    for key in ("estimated_profit_margin", "actual_profit_margin", "budget_utilization", "cost_utilization"):
        assert values[key] == Decimal("0.00"), key


def test_ratios_round_half_up():
    values = compute_summary(Decimal("30000"), [_item("10000")])
    assert values["budget_utilization"] == Decimal("33.33")
    assert values["estimated_profit_margin"] == Decimal("66.67")


def test_extreme_ratios_fit_their_columns():
    # one-cent contract against the largest storable budget
    values = compute_summary(Decimal("0.01"), [_item("9999999999999.99", actual="9999999999999.99")])
    columns = ProjectBudgetSummary.__table__.c

    for key in ("estimated_profit_margin", "actual_profit_margin", "budget_utilization", "cost_utilization"):
        value = values[key]
        integer_digits = len(value.as_tuple().digits) + value.as_tuple().exponent
        column = columns[key].type
        assert integer_digits <= column.precision - column.scale, key


# ===================== RECOMPUTE =====================


async def test_recompute_persists_summary(db_session, seed_data):
    await _add_items(db_session, seed_data, _item("50000", before_tax="45872", tax="4128"))

    summary = await SummaryAggregator(db_session).recompute(seed_data["project"].id, "user-1")

    assert summary.project_id == seed_data["project"].id
    assert summary.contract_value == Decimal("200000.00")
    assert summary.total_budget == Decimal("50000.00")
    assert summary.budget_utilization == Decimal("25.00")
    assert summary.estimated_profit == Decimal("150000.00")
    assert summary.estimated_profit_margin == Decimal("75.00")
    assert summary.last_calculated_at is not None


async def test_recompute_is_idempotent(db_session, seed_data):
    await _add_items(db_session, seed_data, _item("50000", actual="12000"), _item("7000"))
    aggregator = SummaryAggregator(db_session)

    first = await aggregator.recompute(seed_data["project"].id)
    second = await aggregator.recompute(seed_data["project"].id)

    exclude = {"last_calculated_at"}
    assert first.model_dump(exclude=exclude) == second.model_dump(exclude=exclude)


async def test_recompute_upserts_single_row(db_session, seed_data):
    aggregator = SummaryAggregator(db_session)
    await aggregator.recompute(seed_data["project"].id)
    await _add_items(db_session, seed_data, _item("9000"))
    summary = await aggregator.recompute(seed_data["project"].id)

    assert summary.total_budget == Decimal("9000.00")
    assert summary.total_suppliers == 1


async def test_recompute_unknown_project(db_session, seed_data):
    with pytest.raises(NotFoundError):
        await SummaryAggregator(db_session).recompute(9999)


async def test_recompute_failure_keeps_previous_summary(db_session, seed_data):
    project_id = seed_data["project"].id
    aggregator = SummaryAggregator(db_session)
    before = await aggregator.recompute(project_id)
    await _add_items(db_session, seed_data, _item("9000"))

    with patch.object(db_session, "commit", side_effect=OperationalError("UPDATE", {}, Exception("disk I/O error"))):
        with pytest.raises(AggregationError):
            await aggregator.recompute(project_id)

    # the rollback expired the seeded rows; read by id only
    after = await aggregator.get(project_id)
    assert after.total_budget == before.total_budget == Decimal("0.00")


async def test_get_before_first_recompute_is_none(db_session, seed_data):
    assert await SummaryAggregator(db_session).get(seed_data["project"].id) is None
