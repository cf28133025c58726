"""
Alert evaluator - threshold rules over a project budget summary
"""
from decimal import Decimal
from typing import Callable, List, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.config import get_settings
from finance_core.models.budget import AlertSeverity, BudgetAlert, BudgetAlertType, ProjectBudgetSummary
from finance_core.schemas import AlertDraft, BudgetSummaryRecord
from finance_core.utils.money import format_currency
from finance_core.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

UTILIZATION_WARNING_PCT = Decimal("90")
LOW_MARGIN_PCT = Decimal("10")


class AlertRule(NamedTuple):
    alert_type: BudgetAlertType
    severity: AlertSeverity
    title: str
    applies: Callable[[BudgetSummaryRecord], bool]
    message: Callable[[BudgetSummaryRecord], str]
    threshold: Optional[Decimal] = None


def _money(value: Decimal) -> str:
    return format_currency(value, settings.DEFAULT_CURRENCY)


# Evaluated in order; every rule is independent of the others.
RULES: List[AlertRule] = [
    AlertRule(
        alert_type=BudgetAlertType.BUDGET_EXCEEDED,
        severity=AlertSeverity.CRITICAL,
        title="Budget Exceeds Contract Value",
        applies=lambda s: s.total_budget > s.contract_value,
        message=lambda s: (
            f"Total supplier budgets ({_money(s.total_budget)}) exceed "
            f"contract value ({_money(s.contract_value)})"
        ),
    ),
    AlertRule(
        alert_type=BudgetAlertType.BUDGET_WARNING,
        severity=AlertSeverity.WARNING,
        title="Budget Approaching Contract Value",
        applies=lambda s: s.budget_utilization > UTILIZATION_WARNING_PCT,
        message=lambda s: f"Budget utilization is at {s.budget_utilization:.1f}%",
        threshold=UTILIZATION_WARNING_PCT,
    ),
    AlertRule(
        alert_type=BudgetAlertType.PROFIT_LOSS,
        severity=AlertSeverity.CRITICAL,
        title="Project Showing Loss",
        applies=lambda s: s.estimated_profit < 0,
        message=lambda s: f"Estimated loss: {_money(abs(s.estimated_profit))}",
    ),
    AlertRule(
        alert_type=BudgetAlertType.PROFIT_WARNING,
        severity=AlertSeverity.WARNING,
        title="Low Profit Margin",
        applies=lambda s: 0 <= s.estimated_profit_margin < LOW_MARGIN_PCT,
        message=lambda s: f"Profit margin is only {s.estimated_profit_margin:.1f}%",
        threshold=LOW_MARGIN_PCT,
    ),
]

# What each alert type measures, for the current/limit columns
_MEASURES = {
    BudgetAlertType.BUDGET_EXCEEDED: lambda s: (s.total_budget, s.contract_value),
    BudgetAlertType.BUDGET_WARNING: lambda s: (s.budget_utilization, None),
    BudgetAlertType.PROFIT_LOSS: lambda s: (s.estimated_profit, Decimal("0")),
    BudgetAlertType.PROFIT_WARNING: lambda s: (s.estimated_profit_margin, None),
}


class AlertEvaluator:

    def __init__(self, session: AsyncSession):
        self.session = session

    def evaluate(self, summary: BudgetSummaryRecord) -> List[AlertDraft]:
        """Apply the rule list to one summary. Pure and deterministic."""
        drafts = []
        for rule in RULES:
            if not rule.applies(summary):
                continue
            current, limit = _MEASURES[rule.alert_type](summary)
            drafts.append(AlertDraft(
                alert_type=rule.alert_type,
                severity=rule.severity,
                title=rule.title,
                message=rule.message(summary),
                threshold=rule.threshold,
                current_value=current,
                limit_value=limit,
            ))
        return drafts

    async def record(self, summary: BudgetSummaryRecord) -> List[AlertDraft]:
        """
        Evaluate, append one alert row per draft, and set the summary's
        warning counters to reflect this pass only.
        """
        drafts = self.evaluate(summary)
        warning_count = sum(1 for d in drafts if d.severity == AlertSeverity.WARNING)
        critical_count = sum(1 for d in drafts if d.severity == AlertSeverity.CRITICAL)

        try:
            for draft in drafts:
                self.session.add(BudgetAlert(project_id=summary.project_id, **draft.model_dump()))
            await self.session.execute(
                update(ProjectBudgetSummary)
                .where(ProjectBudgetSummary.project_id == summary.project_id)
                .values(
                    has_warnings=bool(drafts),
                    warning_count=warning_count,
                    critical_warning_count=critical_count,
                )
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        if drafts:
            logger.warning(
                f"Project {summary.project_id} budget alerts: "
                + ", ".join(f"{d.severity.value} {d.title}" for d in drafts)
            )
        return drafts

    async def list_alerts(self, project_id: int, limit: int = 100) -> List[BudgetAlert]:
        result = await self.session.execute(
            select(BudgetAlert)
            .where(BudgetAlert.project_id == project_id)
            .order_by(BudgetAlert.created_at.desc(), BudgetAlert.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
