from sqlalchemy import Column, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel

class InventoryCategory(BaseModel):
    __tablename__ = 'inventory_categories'

    organization_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='ux_inventory_categories_name'),
    )

    # Relationships
    items = relationship("InventoryItem", back_populates="category")
