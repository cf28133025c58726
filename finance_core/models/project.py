"""
Project model - the contract a budget is tracked against
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime
from datetime import datetime
from finance_core.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    project_number = Column(String, unique=True, nullable=True)
    description = Column(Text, nullable=True)
    address = Column(String, nullable=True)
    status = Column(String, nullable=False, default="IN_PROGRESS")

    # Financial
    contract_value = Column(Numeric(15, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
