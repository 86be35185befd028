"""SQLAlchemy ORM models"""

from sqlalchemy import Column, String, DateTime, Date, Numeric, JSON, Index, UniqueConstraint
from datetime import datetime
import uuid

from .database import Base


class Bill(Base):
    """Bills table, one row per bill, line items kept as JSON"""
    __tablename__ = "bills"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=False, index=True)
    bill_number = Column(String(50), nullable=False)
    
    # Customer
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String(32), nullable=True)
    
    # Line items: [{"description", "quantity", "rate", "amount"}], decimals as strings
    items = Column(JSON, nullable=False, default=list)
    
    subtotal = Column(Numeric(18, 4), nullable=False, default=0)
    tax_amount = Column(Numeric(18, 4), nullable=False, default=0)
    total_amount = Column(Numeric(18, 4), nullable=False, default=0)
    
    status = Column(String(20), nullable=False, default="draft")
    due_date = Column(Date, nullable=False)
    
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        UniqueConstraint('owner_id', 'bill_number', name='uq_bills_owner_bill_number'),
        Index('ix_bills_owner_created', 'owner_id', 'created_at'),
        Index('ix_bills_status', 'status'),
    )
