from sqlalchemy import Column, Integer, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel

class InventoryCountItem(BaseModel):
    __tablename__ = 'inventory_count_items'

    count_id = Column(Integer, ForeignKey('inventory_counts.id'), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id'), nullable=False, index=True)
    in_stock_quantity = Column(Numeric(12, 2), nullable=False, default=0)  # baseline snapshot
    actual_quantity = Column(Numeric(12, 2), nullable=True)  # NULL until counted
    template_minimum_quantity = Column(Numeric(12, 2))
    template_maximum_quantity = Column(Numeric(12, 2))
    notes = Column(Text)
    counted_by = Column(Integer)  # User ID
    counted_at = Column(DateTime(timezone=True))

    # Relationships
    inventory_count = relationship("InventoryCount", back_populates="items")
    item = relationship("InventoryItem", back_populates="count_items")
