"""
Pydantic records exchanged with the finance core.

Amounts are parsed into cent-quantized Decimals here, at the boundary, so the
services never see floats or strings.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from finance_core.models.budget import AlertSeverity, BudgetAlertType, BudgetItemStatus
from finance_core.models.invoice import InvoiceStatus, InvoiceType, PaymentStatus, PaymentType
from finance_core.utils.money import to_money, to_optional_money
from finance_core.utils.validators import (
    validate_budget_amount, validate_optional_amount, validate_payment_amount, validate_confidence,
)


class Principal(BaseModel):
    """Authenticated caller, resolved upstream"""
    id: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


# --- Budget items ---

class BudgetItemCreate(BaseModel):
    supplier_id: int
    trade_type: str = Field(min_length=1)
    description: Optional[str] = None
    quoted_amount: Decimal
    quoted_amount_before_tax: Optional[Decimal] = None
    quoted_tax_amount: Optional[Decimal] = None
    quotation_reference: Optional[str] = None
    quotation_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("quoted_amount", mode="before")
    @classmethod
    def _parse_amount(cls, v):
        return validate_budget_amount(to_money(v))

    @field_validator("quoted_amount_before_tax", "quoted_tax_amount", mode="before")
    @classmethod
    def _parse_optional(cls, v):
        return validate_optional_amount(to_optional_money(v))


class BudgetItemUpdate(BaseModel):
    trade_type: Optional[str] = None
    description: Optional[str] = None
    quoted_amount: Optional[Decimal] = None
    quoted_amount_before_tax: Optional[Decimal] = None
    quoted_tax_amount: Optional[Decimal] = None
    quotation_reference: Optional[str] = None
    quotation_date: Optional[datetime] = None
    actual_cost: Optional[Decimal] = None
    actual_cost_before_tax: Optional[Decimal] = None
    actual_tax_amount: Optional[Decimal] = None
    is_approved: Optional[bool] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None

    @field_validator(
        "quoted_amount", "quoted_amount_before_tax", "quoted_tax_amount",
        "actual_cost", "actual_cost_before_tax", "actual_tax_amount",
        mode="before",
    )
    @classmethod
    def _parse_amounts(cls, v):
        return validate_optional_amount(to_optional_money(v))


class ExtractedQuotation(BaseModel):
    """Result handed over by the document extraction service"""
    supplier_id: int
    trade_type: str
    total_amount: Decimal
    amount_before_tax: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    quotation_reference: Optional[str] = None
    quotation_date: Optional[datetime] = None
    description: Optional[str] = None
    confidence: float
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    raw: Dict[str, Any] = {}

    @field_validator("total_amount", mode="before")
    @classmethod
    def _parse_total(cls, v):
        return validate_budget_amount(to_money(v))

    @field_validator("amount_before_tax", "tax_amount", mode="before")
    @classmethod
    def _parse_split(cls, v):
        return validate_optional_amount(to_optional_money(v))

    @field_validator("confidence")
    @classmethod
    def _check_confidence(cls, v):
        return validate_confidence(v)


class BudgetItemResponse(BaseModel):
    id: int
    project_id: int
    supplier_id: int
    supplier_name: str
    trade_type: str
    description: Optional[str]
    quoted_amount: Decimal
    quoted_amount_before_tax: Optional[Decimal]
    quoted_tax_amount: Optional[Decimal]
    quotation_reference: Optional[str]
    actual_cost: Decimal
    variance: Optional[Decimal]
    variance_percentage: Optional[Decimal]
    extracted_by_ai: bool
    ai_confidence: Optional[float]
    needs_review: bool
    purchase_order_id: Optional[int]
    po_issued: bool
    po_issued_date: Optional[datetime]
    status: BudgetItemStatus
    is_approved: bool
    approved_by_id: Optional[str]
    approved_at: Optional[datetime]
    notes: Optional[str]

    class Config:
        from_attributes = True


# --- Summary and alerts ---

class BudgetSummaryRecord(BaseModel):
    project_id: int
    contract_value: Decimal
    total_budget: Decimal
    total_budget_before_tax: Decimal
    total_budget_tax_amount: Decimal
    total_actual_cost: Decimal
    total_actual_cost_before_tax: Decimal
    total_actual_tax_amount: Decimal
    estimated_profit: Decimal
    estimated_profit_margin: Decimal
    actual_profit: Decimal
    actual_profit_margin: Decimal
    budget_utilization: Decimal
    cost_utilization: Decimal
    total_suppliers: int
    suppliers_with_quotation: int
    suppliers_with_po: int
    has_warnings: bool = False
    warning_count: int = 0
    critical_warning_count: int = 0
    last_calculated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AlertDraft(BaseModel):
    alert_type: BudgetAlertType
    severity: AlertSeverity
    title: str
    message: str
    threshold: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    limit_value: Optional[Decimal] = None


class BudgetAlertResponse(AlertDraft):
    id: int
    project_id: int
    created_at: datetime

    class Config:
        from_attributes = True


# --- Purchase orders ---

class POLineInput(BaseModel):
    description: str = Field(min_length=1)
    category: str = "MATERIALS"
    quantity: Decimal = Decimal("1")
    unit: str = "pcs"
    unit_price: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None  # percent; settings default when omitted
    notes: Optional[str] = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def _parse_price(cls, v):
        return validate_budget_amount(to_money(v))

    @field_validator("quantity")
    @classmethod
    def _check_quantity(cls, v):
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v


class POIssueDetails(BaseModel):
    delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    items: List[POLineInput] = []


class PurchaseOrderItemResponse(BaseModel):
    id: int
    description: str
    category: str
    quantity: Decimal
    unit: Optional[str]
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_price: Decimal
    notes: Optional[str]
    order: int

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    id: int
    po_number: str
    type: str
    supplier_id: int
    project_id: Optional[int]
    budget_item_id: Optional[int]
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    status: str
    issue_date: Optional[datetime]
    delivery_date: Optional[date]
    delivery_address: Optional[str]
    notes: Optional[str]
    items: List[PurchaseOrderItemResponse] = []

    class Config:
        from_attributes = True


# --- Invoices and payments ---

class InvoiceCreate(BaseModel):
    invoice_type: InvoiceType
    supplier_id: Optional[int] = None
    customer_id: Optional[int] = None
    project_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    supplier_invoice_ref: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal = Decimal("0.00")
    total_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("subtotal", "tax_amount", mode="before")
    @classmethod
    def _parse_amounts(cls, v):
        return validate_budget_amount(to_money(v))

    @field_validator("total_amount", mode="before")
    @classmethod
    def _parse_total(cls, v):
        return validate_optional_amount(to_optional_money(v))

    @model_validator(mode="after")
    def _default_total(self):
        if self.total_amount is None:
            self.total_amount = self.subtotal + self.tax_amount
        if self.status not in (InvoiceStatus.DRAFT, InvoiceStatus.ISSUED):
            raise ValueError("New invoices must be DRAFT or ISSUED")
        return self


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    invoice_type: InvoiceType
    supplier_id: Optional[int]
    customer_id: Optional[int]
    project_id: Optional[int]
    purchase_order_id: Optional[int]
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    currency: str
    status: InvoiceStatus
    invoice_date: date
    due_date: date

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    payment_type: PaymentType
    invoice_id: Optional[int] = None
    amount: Decimal
    currency: Optional[str] = None
    payment_method: str = "BANK_TRANSFER"
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None
    is_draft: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v):
        return validate_payment_amount(to_money(v))


class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    payment_type: PaymentType
    invoice_id: Optional[int]
    amount: Decimal
    currency: str
    payment_method: str
    payment_date: date
    status: PaymentStatus

    class Config:
        from_attributes = True
