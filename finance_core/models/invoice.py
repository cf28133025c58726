"""
Invoice and payment models
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
from finance_core.database import Base


class InvoiceType(str, Enum):
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class PaymentType(str, Enum):
    CLIENT_PAYMENT = "CLIENT_PAYMENT"
    VENDOR_PAYMENT = "VENDOR_PAYMENT"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"


class Invoice(Base):
    """Customer invoice (we bill) or supplier invoice (we are billed)"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String, unique=True, nullable=False, index=True)
    invoice_type = Column(SQLEnum(InvoiceType, native_enum=False), nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True)
    supplier_invoice_ref = Column(String, nullable=True)

    # Financial
    subtotal = Column(Numeric(15, 2), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False)
    amount_paid = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String, nullable=False, default="SGD")

    status = Column(SQLEnum(InvoiceStatus, native_enum=False), nullable=False,
                    default=InvoiceStatus.DRAFT)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    supplier = relationship("Supplier")
    customer = relationship("Customer")
    project = relationship("Project")
    purchase_order = relationship("PurchaseOrder")
    payments = relationship("Payment", back_populates="invoice")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_number = Column(String, unique=True, nullable=False, index=True)
    payment_type = Column(SQLEnum(PaymentType, native_enum=False), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)

    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String, nullable=False, default="SGD")
    payment_method = Column(String, nullable=False, default="BANK_TRANSFER")
    payment_date = Column(Date, nullable=False)
    reference = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(SQLEnum(PaymentStatus, native_enum=False), nullable=False)
    created_by_id = Column(String, nullable=False)
    processed_by_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
