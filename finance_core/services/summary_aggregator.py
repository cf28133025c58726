"""
Summary aggregator - derives the per-project budget summary from the ledger
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.errors import AggregationError
from finance_core.models.budget import ProjectBudgetSummary, SupplierBudgetItem
from finance_core.schemas import BudgetSummaryRecord
from finance_core.services.budget_ledger import BudgetLedger
from finance_core.utils.db_compat import upsert
from finance_core.utils.money import ZERO, percentage, to_money
from finance_core.utils.logger import get_logger

logger = get_logger(__name__)


def compute_summary(contract_value: Decimal, items: Iterable[SupplierBudgetItem]) -> Dict[str, Any]:
    """
    Pure roll-up of a project's budget items against its contract value.

    Every ratio against a non-positive contract value is 0.
    """
    contract_value = to_money(contract_value)
    items = list(items)

    total_budget = sum((to_money(i.quoted_amount) for i in items), ZERO)
    total_budget_before_tax = sum(
        (to_money(i.quoted_amount_before_tax if i.quoted_amount_before_tax is not None else i.quoted_amount)
         for i in items),
        ZERO,
    )
    total_budget_tax = sum((to_money(i.quoted_tax_amount) for i in items), ZERO)

    total_actual = sum((to_money(i.actual_cost) for i in items), ZERO)
    total_actual_before_tax = sum(
        (to_money(i.actual_cost_before_tax if i.actual_cost_before_tax is not None else i.actual_cost)
         for i in items),
        ZERO,
    )
    total_actual_tax = sum((to_money(i.actual_tax_amount) for i in items), ZERO)

    estimated_profit = contract_value - total_budget
    actual_profit = contract_value - total_actual

    return {
        "contract_value": contract_value,
        "total_budget": total_budget,
        "total_budget_before_tax": total_budget_before_tax,
        "total_budget_tax_amount": total_budget_tax,
        "total_actual_cost": total_actual,
        "total_actual_cost_before_tax": total_actual_before_tax,
        "total_actual_tax_amount": total_actual_tax,
        "estimated_profit": estimated_profit,
        "estimated_profit_margin": percentage(estimated_profit, contract_value),
        "actual_profit": actual_profit,
        "actual_profit_margin": percentage(actual_profit, contract_value),
        "budget_utilization": percentage(total_budget, contract_value),
        "cost_utilization": percentage(total_actual, contract_value),
        "total_suppliers": len(items),
        "suppliers_with_quotation": sum(1 for i in items if i.quotation_file_path),
        "suppliers_with_po": sum(1 for i in items if i.po_issued),
    }


class SummaryAggregator:

    def __init__(self, session: AsyncSession, ledger: Optional[BudgetLedger] = None):
        self.session = session
        self.ledger = ledger or BudgetLedger(session)

    async def recompute(self, project_id: int, calculated_by: Optional[str] = None) -> BudgetSummaryRecord:
        """
        Recompute and upsert the project's summary row.

        All derived fields are written by one statement in one commit. On
        failure the transaction is rolled back, so the previous summary stays
        valid, and AggregationError is raised.
        """
        snapshot = await self.ledger.snapshot(project_id)
        values = compute_summary(snapshot.contract_value, snapshot.items)
        values["last_calculated_at"] = datetime.utcnow()
        values["last_calculated_by_id"] = calculated_by

        stmt = upsert(
            self.session,
            ProjectBudgetSummary.__table__,
            values={"project_id": project_id, **values},
            index_elements=["project_id"],
            update=values,
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Budget summary recompute failed for project {project_id}: {e}")
            raise AggregationError(project_id) from e

        summary = await self.get(project_id)
        logger.info(
            f"Budget summary for project {project_id}: budget={summary.total_budget} "
            f"utilization={summary.budget_utilization}% margin={summary.estimated_profit_margin}%"
        )
        return summary

    async def get(self, project_id: int) -> Optional[BudgetSummaryRecord]:
        result = await self.session.execute(
            select(ProjectBudgetSummary)
            .where(ProjectBudgetSummary.project_id == project_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return BudgetSummaryRecord.model_validate(row)
