from sqlalchemy import Column, Integer, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel

class InventoryTemplateItem(BaseModel):
    __tablename__ = 'inventory_template_items'

    template_id = Column(Integer, ForeignKey('inventory_templates.id'), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id'), nullable=False)
    expected_quantity = Column(Numeric(12, 2))  # NULL -> use live stock
    minimum_quantity = Column(Numeric(12, 2))
    maximum_quantity = Column(Numeric(12, 2))
    sort_order = Column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint('template_id', 'item_id', name='ux_inventory_template_items_item'),
    )

    # Relationships
    template = relationship("InventoryTemplate", back_populates="items")
    item = relationship("InventoryItem", back_populates="template_items")
