"""
Purchase order models
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from finance_core.database import Base


class PurchaseOrder(Base):
    """Outgoing purchase order issued to a supplier"""
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    po_number = Column(String, unique=True, nullable=False, index=True)
    type = Column(String, nullable=False, default="OUTGOING")
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    budget_item_id = Column(Integer, nullable=True, index=True)  # originating budget item
    requester_id = Column(String, nullable=True)

    # Financial
    subtotal = Column(Numeric(15, 2), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String, nullable=False, default="SGD")

    # Status
    status = Column(String, nullable=False, default="ISSUED")
    issue_date = Column(DateTime, nullable=True)
    delivery_date = Column(Date, nullable=True)
    delivery_address = Column(String, nullable=True)

    terms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    supplier = relationship("Supplier")
    project = relationship("Project")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order",
                         order_by="PurchaseOrderItem.order")
    activities = relationship("PurchaseOrderActivity", back_populates="purchase_order")


class PurchaseOrderItem(Base):
    """Line item in a purchase order"""
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False)

    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, default="MATERIALS")
    quantity = Column(Numeric(15, 2), nullable=False, default=1)
    unit = Column(String, nullable=True, default="pcs")
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(20, 2), nullable=False, default=0)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_price = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=1)

    # Relationships
    purchase_order = relationship("PurchaseOrder", back_populates="items")


class PurchaseOrderActivity(Base):
    """Audit trail entry for a purchase order"""
    __tablename__ = "purchase_order_activities"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False)
    action = Column(String, nullable=False)  # CREATED, ...
    description = Column(Text, nullable=False)
    user_id = Column(String, nullable=False)
    user_email = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    purchase_order = relationship("PurchaseOrder", back_populates="activities")
