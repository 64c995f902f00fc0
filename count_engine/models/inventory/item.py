from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, Enum as SQLEnum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel
from count_engine.models.shared.enums import ItemStatus

class InventoryItem(BaseModel):
    __tablename__ = 'inventory_items'

    organization_id = Column(Integer, nullable=False, index=True)
    team_id = Column(Integer, nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    sku = Column(String(50), nullable=False, index=True)
    barcode = Column(String(100))
    category_id = Column(Integer, ForeignKey('inventory_categories.id'))
    current_stock = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(SQLEnum(ItemStatus), nullable=False, default=ItemStatus.ACTIVE)

    __table_args__ = (
        UniqueConstraint('organization_id', 'sku', name='ux_inventory_items_sku'),
        UniqueConstraint('organization_id', 'barcode', name='ux_inventory_items_barcode'),
        CheckConstraint('current_stock >= 0', name='ck_inventory_items_stock_non_negative'),
    )

    # Relationships
    category = relationship("InventoryCategory", back_populates="items")
    template_items = relationship("InventoryTemplateItem", back_populates="item")
    count_items = relationship("InventoryCountItem", back_populates="item")
    transactions = relationship("InventoryTransaction", back_populates="item")

    @property
    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE
