from sqlalchemy import Column, Integer, DateTime, Text, Numeric, ForeignKey, Enum as SQLEnum, Date
from sqlalchemy.orm import relationship
from count_engine.db.base import BaseModel
from count_engine.models.shared.enums import CountStatus

class InventoryCount(BaseModel):
    __tablename__ = 'inventory_counts'

    organization_id = Column(Integer, nullable=False, index=True)
    team_id = Column(Integer, nullable=True)
    template_id = Column(Integer, ForeignKey('inventory_templates.id'), nullable=True)
    count_date = Column(Date, nullable=False)
    status = Column(SQLEnum(CountStatus), nullable=False, default=CountStatus.IN_PROGRESS)
    notes = Column(Text)

    # Aggregates maintained by the recalculator
    total_items_count = Column(Integer, nullable=False, default=0)
    completion_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    variance_count = Column(Integer, nullable=False, default=0)

    started_by = Column(Integer)  # User ID
    completed_by = Column(Integer)  # User ID
    completed_at = Column(DateTime(timezone=True))

    void_reason = Column(Text)
    voided_by = Column(Integer)  # User ID
    voided_at = Column(DateTime(timezone=True))

    # Relationships
    template = relationship("InventoryTemplate", back_populates="counts")
    items = relationship("InventoryCountItem", back_populates="inventory_count")
