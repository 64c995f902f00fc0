from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from count_engine.db.base import Base

class SkuCounter(Base):
    """Per organization/prefix sequence backing atomic SKU issuance"""
    __tablename__ = 'sku_counters'

    organization_id = Column(Integer, primary_key=True)
    prefix = Column(String(10), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
