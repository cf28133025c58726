"""
Budget ledger - the authoritative set of supplier budget items for a project.

The ledger validates and applies mutations, then tells its listeners which
project changed. It never recomputes summaries or evaluates alerts itself;
see services/budget_refresh.py for the chain it is usually wired to.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.config import get_settings
from finance_core.errors import ConflictError, NotFoundError, ValidationError
from finance_core.models.budget import BudgetItemStatus, SupplierBudgetItem
from finance_core.models.project import Project
from finance_core.models.supplier import Supplier
from finance_core.schemas import BudgetItemCreate, BudgetItemUpdate, ExtractedQuotation, Principal
from finance_core.utils.money import ZERO, percentage, to_money
from finance_core.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

ChangeListener = Callable[[int], Awaitable[object]]

APPROVABLE_STATUSES = {BudgetItemStatus.QUOTED, BudgetItemStatus.PENDING_APPROVAL}
QUOTE_FIELDS = {"quoted_amount", "quoted_amount_before_tax", "quoted_tax_amount"}
REQUIRED_FIELDS = ("trade_type", "quoted_amount")


@dataclass
class LedgerSnapshot:
    project_id: int
    contract_value: Decimal
    items: List[SupplierBudgetItem] = field(default_factory=list)


def apply_variance(item: SupplierBudgetItem) -> None:
    """variance = quoted - actual; percentage of quoted, 0 when nothing was quoted"""
    quoted = to_money(item.quoted_amount)
    actual = to_money(item.actual_cost)
    item.variance = quoted - actual
    item.variance_percentage = percentage(item.variance, quoted)


class BudgetLedger:

    def __init__(self, session: AsyncSession, listeners: Optional[Iterable[ChangeListener]] = None):
        self.session = session
        self.listeners: List[ChangeListener] = list(listeners or [])

    # --- Reads ---

    async def get_project(self, project_id: int) -> Project:
        project = await self.session.get(Project, project_id)
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    async def contract_value(self, project_id: int) -> Decimal:
        project = await self.get_project(project_id)
        return to_money(project.contract_value)

    async def list_items(self, project_id: int) -> List[SupplierBudgetItem]:
        result = await self.session.execute(
            select(SupplierBudgetItem)
            .where(SupplierBudgetItem.project_id == project_id)
            .order_by(SupplierBudgetItem.id)
        )
        return list(result.scalars().all())

    async def get_item(self, project_id: int, item_id: int) -> SupplierBudgetItem:
        item = await self.session.get(SupplierBudgetItem, item_id)
        if not item or item.project_id != project_id:
            raise NotFoundError("Budget item", item_id)
        return item

    async def snapshot(self, project_id: int) -> LedgerSnapshot:
        contract_value = await self.contract_value(project_id)
        items = await self.list_items(project_id)
        return LedgerSnapshot(project_id=project_id, contract_value=contract_value, items=items)

    # --- Mutations ---

    async def create(self, project_id: int, data: BudgetItemCreate, created_by: Principal) -> SupplierBudgetItem:
        """Manual quotation entry"""
        await self.get_project(project_id)
        supplier = await self._get_supplier(data.supplier_id)

        item = SupplierBudgetItem(
            project_id=project_id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            trade_type=data.trade_type,
            description=data.description or f"{data.trade_type} - {supplier.name}",
            quoted_amount=data.quoted_amount,
            quoted_amount_before_tax=data.quoted_amount_before_tax,
            quoted_tax_amount=data.quoted_tax_amount,
            quotation_reference=data.quotation_reference,
            quotation_date=data.quotation_date,
            actual_cost=ZERO,
            notes=data.notes,
            status=BudgetItemStatus.QUOTED,
            extracted_by_ai=False,
            needs_review=False,
            created_by_id=created_by.id,
        )
        apply_variance(item)
        self.session.add(item)
        await self.session.commit()

        logger.info(f"Budget item {item.id} created for project {project_id} ({supplier.name}, {item.quoted_amount})")
        await self.notify_changed(project_id)
        await self.session.refresh(item)
        return item

    async def create_from_extraction(
        self, project_id: int, extraction: ExtractedQuotation, created_by: Principal
    ) -> SupplierBudgetItem:
        """Budget item from an uploaded quotation that the extraction service has read"""
        await self.get_project(project_id)
        supplier = await self._get_supplier(extraction.supplier_id)

        needs_review = (
            extraction.confidence < settings.REVIEW_CONFIDENCE_THRESHOLD
            or extraction.total_amount == 0
        )
        item = SupplierBudgetItem(
            project_id=project_id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            trade_type=extraction.trade_type,
            description=extraction.description or f"{extraction.trade_type} - {supplier.name}",
            quoted_amount=extraction.total_amount,
            quoted_amount_before_tax=extraction.amount_before_tax,
            quoted_tax_amount=extraction.tax_amount,
            quotation_reference=extraction.quotation_reference,
            quotation_date=extraction.quotation_date,
            quotation_file_path=extraction.file_path,
            quotation_file_name=extraction.file_name,
            actual_cost=ZERO,
            extracted_by_ai=True,
            ai_confidence=extraction.confidence,
            ai_extracted_data=extraction.raw or None,
            needs_review=needs_review,
            status=BudgetItemStatus.PENDING_APPROVAL if needs_review else BudgetItemStatus.QUOTED,
            created_by_id=created_by.id,
        )
        apply_variance(item)
        self.session.add(item)
        await self.session.commit()

        logger.info(
            f"Budget item {item.id} extracted for project {project_id} "
            f"(confidence={extraction.confidence:.2f}, needs_review={needs_review})"
        )
        await self.notify_changed(project_id)
        await self.session.refresh(item)
        return item

    async def update(
        self, project_id: int, item_id: int, data: BudgetItemUpdate, updated_by: Principal
    ) -> SupplierBudgetItem:
        item = await self.get_item(project_id, item_id)
        updates = data.model_dump(exclude_unset=True)
        approve = updates.pop("is_approved", None)

        if item.po_issued:
            changed = {
                key for key in QUOTE_FIELDS & updates.keys()
                if updates[key] != getattr(item, key)
            }
            if changed:
                raise ConflictError(
                    f"Quoted amounts of budget item {item_id} are locked: PO already issued"
                )
        for key in REQUIRED_FIELDS:
            if key in updates and updates[key] is None:
                raise ValidationError(f"{key} cannot be cleared")
        if "actual_cost" in updates and updates["actual_cost"] is None:
            updates["actual_cost"] = ZERO

        for key, value in updates.items():
            setattr(item, key, value)
        apply_variance(item)

        if approve and not item.is_approved:
            try:
                self._apply_approval(item, updated_by)
            except (ConflictError, ValidationError):
                await self.session.rollback()
                raise

        await self.session.commit()

        logger.info(f"Budget item {item_id} updated: {sorted(updates)}")
        await self.notify_changed(project_id)
        await self.session.refresh(item)
        return item

    async def record_actual_cost(
        self,
        project_id: int,
        item_id: int,
        actual_cost: Decimal,
        recorded_by: Principal,
        before_tax: Optional[Decimal] = None,
        tax_amount: Optional[Decimal] = None,
    ) -> SupplierBudgetItem:
        """Replace the item's actual cost and recompute variance"""
        return await self.update(
            project_id,
            item_id,
            BudgetItemUpdate(
                actual_cost=actual_cost,
                actual_cost_before_tax=before_tax,
                actual_tax_amount=tax_amount,
            ),
            recorded_by,
        )

    async def approve(self, project_id: int, item_id: int, approved_by: Principal) -> SupplierBudgetItem:
        item = await self.get_item(project_id, item_id)
        if item.is_approved:
            return item

        self._apply_approval(item, approved_by)
        await self.session.commit()

        logger.info(f"Budget item {item_id} approved by {approved_by.id}")
        await self.notify_changed(project_id)
        await self.session.refresh(item)
        return item

    async def reject(self, project_id: int, item_id: int, rejected_by: Principal) -> SupplierBudgetItem:
        item = await self.get_item(project_id, item_id)
        if item.status == BudgetItemStatus.REJECTED:
            return item
        if item.status not in APPROVABLE_STATUSES:
            raise ConflictError(f"Budget item {item_id} is {item.status.value} and cannot be rejected")

        item.status = BudgetItemStatus.REJECTED
        item.needs_review = False
        await self.session.commit()

        logger.info(f"Budget item {item_id} rejected by {rejected_by.id}")
        await self.notify_changed(project_id)
        await self.session.refresh(item)
        return item

    async def record_po_issuance(
        self, item: SupplierBudgetItem, purchase_order_id: int, issued_at: datetime
    ) -> None:
        """
        Link an issued PO to the item.

        Runs inside the issuer's transaction: no commit and no notification
        here, the issuer refreshes the budget once the PO is durable. The
        link is a conditional UPDATE on po_issued = false, so of two
        concurrent issuers for one item only the first to commit wins.
        """
        if item.po_issued:
            raise ConflictError(f"PO already issued for budget item {item.id}")
        if not item.is_approved:
            raise ValidationError("Budget item must be approved before issuing PO")
        if purchase_order_id is None:
            raise ValidationError("purchase_order_id is required")

        result = await self.session.execute(
            update(SupplierBudgetItem)
            .where(SupplierBudgetItem.id == item.id, SupplierBudgetItem.po_issued.is_(False))
            .values(
                purchase_order_id=purchase_order_id,
                po_issued=True,
                po_issued_date=issued_at,
                status=BudgetItemStatus.PO_ISSUED,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"PO already issued for budget item {item.id}")
        await self.session.refresh(item)

    async def delete(self, project_id: int, item_id: int) -> None:
        item = await self.get_item(project_id, item_id)
        if item.po_issued:
            raise ConflictError(
                "Cannot delete budget item with issued PO. Please cancel the PO first."
            )

        await self.session.delete(item)
        await self.session.commit()

        logger.info(f"Budget item {item_id} deleted from project {project_id}")
        await self.notify_changed(project_id)

    async def notify_changed(self, project_id: int) -> None:
        for listener in self.listeners:
            await listener(project_id)

    # --- Helpers ---

    async def _get_supplier(self, supplier_id: int) -> Supplier:
        supplier = await self.session.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def _apply_approval(self, item: SupplierBudgetItem, approved_by: Principal) -> None:
        if item.status not in APPROVABLE_STATUSES:
            raise ConflictError(
                f"Budget item {item.id} is {item.status.value} and cannot be approved"
            )
        if not item.supplier_id or item.quoted_amount is None or to_money(item.quoted_amount) <= 0:
            raise ValidationError("Budget item needs a supplier and a quoted amount before approval")

        item.is_approved = True
        item.approved_by_id = approved_by.id
        item.approved_at = datetime.utcnow()
        item.status = BudgetItemStatus.APPROVED
        item.needs_review = False
