"""
Document issuer - atomic issuance of purchase orders, invoices and payments.

Each issuance allocates its number and writes every row it needs in one
transaction. Budget summaries are refreshed only after that transaction has
committed; a failed refresh never undoes an issued document.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from finance_core.config import get_settings
from finance_core.errors import ConflictError, NotFoundError, ValidationError
from finance_core.models.budget import SupplierBudgetItem
from finance_core.models.invoice import Invoice, InvoiceStatus, InvoiceType, Payment, PaymentStatus, PaymentType
from finance_core.models.purchase_order import PurchaseOrder, PurchaseOrderActivity, PurchaseOrderItem
from finance_core.models.sequence import DocumentKind
from finance_core.models.supplier import Customer, Supplier
from finance_core.schemas import InvoiceCreate, PaymentCreate, POIssueDetails, POLineInput, Principal
from finance_core.services.budget_ledger import BudgetLedger, apply_variance
from finance_core.services.budget_refresh import BudgetRefresher
from finance_core.services.sequence_allocator import SequenceAllocator, vendor_code
from finance_core.utils.money import CENTS, HUNDRED, ZERO, percentage, to_money
from finance_core.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

PAYMENT_INVOICE_TYPES = {
    PaymentType.CLIENT_PAYMENT: InvoiceType.CUSTOMER,
    PaymentType.VENDOR_PAYMENT: InvoiceType.SUPPLIER,
}


def _line_amounts(line: POLineInput):
    """(subtotal, tax rate, tax, total) for a supplied PO line"""
    rate = line.tax_rate if line.tax_rate is not None else Decimal(str(settings.DEFAULT_TAX_RATE))
    subtotal = (line.quantity * line.unit_price).quantize(CENTS, rounding=ROUND_HALF_UP)
    tax = (subtotal * rate / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)
    return subtotal, rate, tax, subtotal + tax


class DocumentIssuer:

    def __init__(
        self,
        session: AsyncSession,
        allocator: Optional[SequenceAllocator] = None,
        ledger: Optional[BudgetLedger] = None,
        refresher: Optional[BudgetRefresher] = None,
    ):
        self.session = session
        self.allocator = allocator or SequenceAllocator(session)
        self.ledger = ledger or BudgetLedger(session)
        self.refresher = refresher or BudgetRefresher(session)

    # ===================== PURCHASE ORDERS =====================

    async def issue_po(
        self,
        project_id: int,
        budget_item_id: int,
        details: POIssueDetails,
        issued_by: Principal,
    ) -> PurchaseOrder:
        """Issue a purchase order from an approved supplier budget item"""
        project = await self.ledger.get_project(project_id)
        item = await self.ledger.get_item(project_id, budget_item_id)

        if item.po_issued:
            raise ConflictError(f"PO already issued for budget item {item.id} (purchase order {item.purchase_order_id})")
        if not item.is_approved:
            raise ValidationError("Budget item must be approved before issuing PO")

        supplier = await self.session.get(Supplier, item.supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", item.supplier_id)

        before_tax = item.quoted_amount_before_tax
        subtotal = to_money(before_tax if before_tax is not None else item.quoted_amount)
        tax_amount = to_money(item.quoted_tax_amount)
        total_amount = to_money(item.quoted_amount)
        issued_at = datetime.utcnow()

        try:
            po_number = await self.allocator.next_number(
                DocumentKind.PURCHASE_ORDER, issued_at, vendor_code(supplier.name)
            )
            po = PurchaseOrder(
                po_number=po_number,
                type="OUTGOING",
                supplier_id=supplier.id,
                project_id=project_id,
                budget_item_id=item.id,
                requester_id=issued_by.id,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total_amount,
                currency=settings.DEFAULT_CURRENCY,
                status="ISSUED",
                issue_date=issued_at,
                delivery_date=details.delivery_date,
                delivery_address=details.delivery_address or project.address or "",
                terms=details.terms or settings.DEFAULT_PO_TERMS,
                notes=details.notes or f"PO for {item.trade_type} - {item.description or ''}",
                created_by_id=issued_by.id,
            )
            self.session.add(po)
            await self.session.flush()

            await self._add_po_lines(po, item, details.items, subtotal, tax_amount, total_amount)

            self.session.add(PurchaseOrderActivity(
                purchase_order_id=po.id,
                action="CREATED",
                description=f"PO created from budget quotation by {issued_by.display_name}",
                user_id=issued_by.id,
                user_email=issued_by.email or "",
            ))
            await self.ledger.record_po_issuance(item, po.id, issued_at)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error(f"PO issuance rolled back for budget item {budget_item_id} (project {project_id})")
            raise

        logger.info(f"Issued {po_number} for budget item {budget_item_id} ({total_amount})")
        await self._refresh_budget(project_id)
        return await self.get_purchase_order(po.id)

    async def _add_po_lines(
        self,
        po: PurchaseOrder,
        item: SupplierBudgetItem,
        lines: List[POLineInput],
        subtotal: Decimal,
        tax_amount: Decimal,
        total_amount: Decimal,
    ) -> None:
        if lines:
            for index, line in enumerate(lines, start=1):
                line_subtotal, rate, line_tax, line_total = _line_amounts(line)
                self.session.add(PurchaseOrderItem(
                    purchase_order_id=po.id,
                    description=line.description,
                    category=line.category,
                    quantity=line.quantity,
                    unit=line.unit,
                    unit_price=line.unit_price,
                    tax_rate=rate,
                    subtotal=line_subtotal,
                    tax_amount=line_tax,
                    total_price=line_total,
                    notes=line.notes or "",
                    order=index,
                ))
        else:
            # Single lump-sum line mirroring the quotation
            self.session.add(PurchaseOrderItem(
                purchase_order_id=po.id,
                description=item.description or f"{item.trade_type} - {item.supplier_name}",
                category="MATERIALS",
                quantity=Decimal("1"),
                unit="lot",
                unit_price=subtotal,
                tax_rate=percentage(tax_amount, subtotal),
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_price=total_amount,
                notes=f"Quotation Ref: {item.quotation_reference}" if item.quotation_reference else "",
                order=1,
            ))
        await self.session.flush()

    async def get_purchase_order(self, purchase_order_id: int) -> PurchaseOrder:
        result = await self.session.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items), selectinload(PurchaseOrder.activities))
            .where(PurchaseOrder.id == purchase_order_id)
            .execution_options(populate_existing=True)
        )
        po = result.scalar_one_or_none()
        if not po:
            raise NotFoundError("Purchase order", purchase_order_id)
        return po

    # ===================== INVOICES =====================

    async def issue_invoice(self, data: InvoiceCreate, issued_by: Principal) -> Invoice:
        """Issue a customer or supplier invoice.

        A supplier invoice billed against a PO that came from a budget item
        adds its totals to that item's actual cost.
        """
        if data.invoice_type == InvoiceType.CUSTOMER:
            if not data.customer_id:
                raise ValidationError("Customer is required for customer invoices")
            if not await self.session.get(Customer, data.customer_id):
                raise NotFoundError("Customer", data.customer_id)
            kind = DocumentKind.CUSTOMER_INVOICE
        else:
            if not data.supplier_id:
                raise ValidationError("Supplier is required for supplier invoices")
            if not await self.session.get(Supplier, data.supplier_id):
                raise NotFoundError("Supplier", data.supplier_id)
            kind = DocumentKind.SUPPLIER_INVOICE

        project_id = data.project_id
        if project_id is not None:
            await self.ledger.get_project(project_id)

        budget_item = None
        if data.purchase_order_id is not None:
            po = await self.session.get(PurchaseOrder, data.purchase_order_id)
            if not po:
                raise NotFoundError("Purchase order", data.purchase_order_id)
            if data.invoice_type == InvoiceType.SUPPLIER and po.supplier_id != data.supplier_id:
                raise ValidationError("Invoice supplier does not match the purchase order supplier")
            if project_id is None:
                project_id = po.project_id
            if data.invoice_type == InvoiceType.SUPPLIER and po.budget_item_id:
                budget_item = await self.session.get(SupplierBudgetItem, po.budget_item_id)

        issued_on = date.today()
        invoice_date = data.invoice_date or issued_on
        due_date = data.due_date or invoice_date + timedelta(days=settings.DEFAULT_PAYMENT_TERMS_DAYS)

        try:
            invoice_number = await self.allocator.next_number(kind, issued_on)
            invoice = Invoice(
                invoice_number=invoice_number,
                invoice_type=data.invoice_type,
                supplier_id=data.supplier_id if data.invoice_type == InvoiceType.SUPPLIER else None,
                customer_id=data.customer_id if data.invoice_type == InvoiceType.CUSTOMER else None,
                project_id=project_id,
                purchase_order_id=data.purchase_order_id,
                supplier_invoice_ref=data.supplier_invoice_ref,
                subtotal=data.subtotal,
                tax_amount=data.tax_amount,
                total_amount=data.total_amount,
                amount_paid=ZERO,
                currency=data.currency or settings.DEFAULT_CURRENCY,
                status=data.status,
                invoice_date=invoice_date,
                due_date=due_date,
                description=data.description,
                notes=data.notes,
                created_by_id=issued_by.id,
            )
            self.session.add(invoice)

            if budget_item is not None:
                budget_item.actual_cost = to_money(budget_item.actual_cost) + data.total_amount
                budget_item.actual_cost_before_tax = to_money(budget_item.actual_cost_before_tax) + data.subtotal
                budget_item.actual_tax_amount = to_money(budget_item.actual_tax_amount) + data.tax_amount
                apply_variance(budget_item)

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error(f"{kind.value} issuance rolled back")
            raise

        logger.info(f"Issued {invoice_number} ({invoice.total_amount})")
        if budget_item is not None:
            await self._refresh_budget(budget_item.project_id)
            await self.session.refresh(invoice)
        return invoice

    # ===================== PAYMENTS =====================

    async def issue_payment(self, data: PaymentCreate, issued_by: Principal) -> Payment:
        """Record a payment; non-draft payments settle the linked invoice"""
        invoice = None
        if data.invoice_id is not None:
            invoice = await self.session.get(Invoice, data.invoice_id)
            if not invoice:
                raise NotFoundError("Invoice", data.invoice_id)
            if invoice.invoice_type != PAYMENT_INVOICE_TYPES[data.payment_type]:
                raise ValidationError(
                    f"{data.payment_type.value} cannot settle a {invoice.invoice_type.value} invoice"
                )
            outstanding = to_money(invoice.total_amount) - to_money(invoice.amount_paid)
            if data.amount > outstanding:
                raise ValidationError(f"Payment {data.amount} exceeds outstanding balance {outstanding}")

        issued_on = date.today()
        try:
            payment_number = await self.allocator.next_number(DocumentKind.PAYMENT, issued_on)
            payment = Payment(
                payment_number=payment_number,
                payment_type=data.payment_type,
                invoice_id=data.invoice_id,
                amount=data.amount,
                currency=data.currency or settings.DEFAULT_CURRENCY,
                payment_method=data.payment_method,
                payment_date=data.payment_date,
                reference=data.reference,
                notes=data.notes,
                status=PaymentStatus.PENDING if data.is_draft else PaymentStatus.PROCESSING,
                created_by_id=issued_by.id,
                processed_by_id=None if data.is_draft else issued_by.id,
            )
            self.session.add(payment)

            if invoice is not None and not data.is_draft:
                invoice.amount_paid = to_money(invoice.amount_paid) + data.amount
                if invoice.amount_paid >= to_money(invoice.total_amount):
                    invoice.status = InvoiceStatus.PAID
                else:
                    invoice.status = InvoiceStatus.PARTIALLY_PAID

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error("Payment issuance rolled back")
            raise

        logger.info(f"Issued {payment_number} ({payment.amount})")
        return payment

    # ===================== HELPERS =====================

    async def _refresh_budget(self, project_id: int) -> None:
        """Post-commit summary refresh; the issued document is already durable"""
        await self.refresher(project_id)
