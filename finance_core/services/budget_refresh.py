"""
Budget refresh - the one aggregation -> alert chain every mutation path uses
"""
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.errors import AggregationError
from finance_core.schemas import AlertDraft, BudgetSummaryRecord
from finance_core.services.alert_evaluator import AlertEvaluator
from finance_core.services.budget_ledger import BudgetLedger
from finance_core.services.summary_aggregator import SummaryAggregator
from finance_core.utils.logger import get_logger

logger = get_logger(__name__)


class BudgetRefresher:
    """
    Recompute the project summary, then record alerts against it.

    `refresh` raises on failure and backs the explicit recalculation
    endpoint. Calling the refresher, as ledger listeners and the document
    issuer do after their own commit, logs the failure instead: the change
    that triggered it is already durable.
    """

    def __init__(self, session: AsyncSession, calculated_by: Optional[str] = None):
        self.aggregator = SummaryAggregator(session)
        self.evaluator = AlertEvaluator(session)
        self.calculated_by = calculated_by

    async def refresh(self, project_id: int) -> Tuple[BudgetSummaryRecord, List[AlertDraft]]:
        summary = await self.aggregator.recompute(project_id, self.calculated_by)
        drafts = await self.evaluator.record(summary)
        return await self.aggregator.get(project_id), drafts

    async def __call__(self, project_id: int) -> None:
        try:
            await self.refresh(project_id)
        except (AggregationError, SQLAlchemyError):
            logger.exception(
                f"Budget refresh failed for project {project_id}; "
                f"retry with a recalculation of the project budget"
            )


def wired_ledger(session: AsyncSession, calculated_by: Optional[str] = None) -> BudgetLedger:
    """Ledger whose mutations refresh the project summary and alerts"""
    return BudgetLedger(session, listeners=[BudgetRefresher(session, calculated_by)])
