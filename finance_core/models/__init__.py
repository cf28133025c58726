from finance_core.models.project import Project
from finance_core.models.supplier import Supplier, Customer
from finance_core.models.sequence import DocumentSequence, DocumentKind
from finance_core.models.budget import (
    SupplierBudgetItem, ProjectBudgetSummary, BudgetAlert,
    BudgetItemStatus, AlertSeverity, BudgetAlertType,
)
from finance_core.models.purchase_order import PurchaseOrder, PurchaseOrderItem, PurchaseOrderActivity
from finance_core.models.invoice import Invoice, Payment, InvoiceType, InvoiceStatus, PaymentType, PaymentStatus

__all__ = [
    "Project",
    "Supplier",
    "Customer",
    "DocumentSequence",
    "DocumentKind",
    "SupplierBudgetItem",
    "ProjectBudgetSummary",
    "BudgetAlert",
    "BudgetItemStatus",
    "AlertSeverity",
    "BudgetAlertType",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderActivity",
    "Invoice",
    "Payment",
    "InvoiceType",
    "InvoiceStatus",
    "PaymentType",
    "PaymentStatus",
]
