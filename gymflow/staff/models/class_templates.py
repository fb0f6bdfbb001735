"""Class Template Model - Reusable defaults for generated classes"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Numeric,
    DateTime,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from gymflow.core.database import Base


class ClassTemplate(Base):
    __tablename__ = "class_templates"

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, nullable=False, index=True)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    # group, private, open_gym, event, workshop
    class_type = Column(String(20), default="group", nullable=False)

    duration_minutes = Column(Integer, default=60, nullable=False)
    capacity = Column(Integer, nullable=True)  # NULL = без ограничения
    location = Column(String(255), nullable=True)
    color = Column(String(7), default="#3b82f6", nullable=False)

    requires_subscription = Column(Boolean, default=True, nullable=False)
    drop_in_price = Column(Numeric(10, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    classes = relationship("ScheduledClass", back_populates="template")

    __table_args__ = (Index("ix_class_templates_org_active", "org_id", "is_active"),)

    def __repr__(self):
        return f"<ClassTemplate(id={self.id}, name='{self.name}', org_id={self.org_id})>"
