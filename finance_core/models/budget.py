"""
Project budget models - supplier budget items, derived summary, alert log
"""
from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Float, DateTime, ForeignKey, Boolean, JSON,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
from finance_core.database import Base


class BudgetItemStatus(str, Enum):
    QUOTED = "QUOTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    PO_ISSUED = "PO_ISSUED"
    REJECTED = "REJECTED"


class AlertSeverity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class BudgetAlertType(str, Enum):
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    BUDGET_WARNING = "BUDGET_WARNING"
    PROFIT_LOSS = "PROFIT_LOSS"
    PROFIT_WARNING = "PROFIT_WARNING"


class SupplierBudgetItem(Base):
    """One supplier quotation / cost line tracked against a project"""
    __tablename__ = "supplier_budget_items"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = Column(String, nullable=False)
    trade_type = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Quotation
    quoted_amount = Column(Numeric(15, 2), nullable=False)
    quoted_amount_before_tax = Column(Numeric(15, 2), nullable=True)
    quoted_tax_amount = Column(Numeric(15, 2), nullable=True)
    quotation_reference = Column(String, nullable=True)
    quotation_date = Column(DateTime, nullable=True)
    quotation_file_path = Column(String, nullable=True)
    quotation_file_name = Column(String, nullable=True)

    # Actual cost
    actual_cost = Column(Numeric(15, 2), nullable=False, default=0)
    actual_cost_before_tax = Column(Numeric(15, 2), nullable=True)
    actual_tax_amount = Column(Numeric(15, 2), nullable=True)
    variance = Column(Numeric(15, 2), nullable=True)  # quoted - actual
    variance_percentage = Column(Numeric(20, 2), nullable=True)

    # Extraction
    extracted_by_ai = Column(Boolean, nullable=False, default=False)
    ai_confidence = Column(Float, nullable=True)
    ai_extracted_data = Column(JSON, nullable=True)
    needs_review = Column(Boolean, nullable=False, default=False)

    # Purchase order link
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True)
    po_issued = Column(Boolean, nullable=False, default=False, index=True)
    po_issued_date = Column(DateTime, nullable=True)

    # Approval
    status = Column(SQLEnum(BudgetItemStatus, native_enum=False), nullable=False,
                    default=BudgetItemStatus.QUOTED, index=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by_id = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    created_by_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project")
    supplier = relationship("Supplier")
    purchase_order = relationship("PurchaseOrder", foreign_keys=[purchase_order_id])


class ProjectBudgetSummary(Base):
    """Derived per-project roll-up. Only the aggregator and alert evaluator write it."""
    __tablename__ = "project_budget_summaries"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, unique=True)

    contract_value = Column(Numeric(15, 2), nullable=False)
    total_budget = Column(Numeric(15, 2), nullable=False)
    total_budget_before_tax = Column(Numeric(15, 2), nullable=False, default=0)
    total_budget_tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_actual_cost = Column(Numeric(15, 2), nullable=False, default=0)
    total_actual_cost_before_tax = Column(Numeric(15, 2), nullable=False, default=0)
    total_actual_tax_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Ratios of 15-digit amounts over a one-cent base need 18 integer digits
    estimated_profit = Column(Numeric(15, 2), nullable=False)
    estimated_profit_margin = Column(Numeric(20, 2), nullable=False)
    actual_profit = Column(Numeric(15, 2), nullable=False)
    actual_profit_margin = Column(Numeric(20, 2), nullable=False)
    budget_utilization = Column(Numeric(20, 2), nullable=False)
    cost_utilization = Column(Numeric(20, 2), nullable=False)

    total_suppliers = Column(Integer, nullable=False, default=0)
    suppliers_with_quotation = Column(Integer, nullable=False, default=0)
    suppliers_with_po = Column(Integer, nullable=False, default=0)

    has_warnings = Column(Boolean, nullable=False, default=False)
    warning_count = Column(Integer, nullable=False, default=0)
    critical_warning_count = Column(Integer, nullable=False, default=0)

    last_calculated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_calculated_by_id = Column(String, nullable=True)

    project = relationship("Project")


class BudgetAlert(Base):
    """Append-only alert log entry"""
    __tablename__ = "budget_alerts"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    alert_type = Column(SQLEnum(BudgetAlertType, native_enum=False), nullable=False)
    severity = Column(SQLEnum(AlertSeverity, native_enum=False), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    threshold = Column(Numeric(9, 2), nullable=True)
    current_value = Column(Numeric(15, 2), nullable=True)
    limit_value = Column(Numeric(15, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
