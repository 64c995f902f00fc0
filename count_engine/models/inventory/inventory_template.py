from sqlalchemy import Column, Integer, String, Text, Boolean
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel

class InventoryTemplate(BaseModel):
    __tablename__ = 'inventory_templates'

    organization_id = Column(Integer, nullable=False, index=True)
    team_id = Column(Integer, nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)

    # Relationships
    items = relationship("InventoryTemplateItem", back_populates="template")
    counts = relationship("InventoryCount", back_populates="template")
