from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel
from count_engine.models.shared.enums import InventoryTransactionType

class InventoryTransaction(BaseModel):
    """Append-only stock ledger entry"""
    __tablename__ = 'inventory_transactions'

    organization_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id'), nullable=False, index=True)
    transaction_type = Column(SQLEnum(InventoryTransactionType), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)  # signed delta
    reference_type = Column(String(50))  # INVENTORY_COUNT, MANUAL
    reference_id = Column(Integer)
    notes = Column(Text)

    # Relationships
    item = relationship("InventoryItem", back_populates="transactions")
