"""
Document sequence counters - one row per (document kind, period)
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from datetime import datetime
from enum import Enum
from finance_core.database import Base


class DocumentKind(str, Enum):
    PURCHASE_ORDER = "PURCHASE_ORDER"
    CUSTOMER_INVOICE = "CUSTOMER_INVOICE"
    SUPPLIER_INVOICE = "SUPPLIER_INVOICE"
    PAYMENT = "PAYMENT"


DOCUMENT_PREFIXES = {
    DocumentKind.PURCHASE_ORDER: "PO",
    DocumentKind.CUSTOMER_INVOICE: "INV",
    DocumentKind.SUPPLIER_INVOICE: "SINV",
    DocumentKind.PAYMENT: "PAY",
}


class DocumentSequence(Base):
    """Last number handed out for a scope. Created on first use, never deleted."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint("kind", "period_prefix", name="uq_document_sequence_scope"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String, nullable=False)
    period_prefix = Column(String, nullable=False)  # e.g. "2025"
    current_value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
