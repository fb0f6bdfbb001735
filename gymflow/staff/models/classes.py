"""Scheduled Class Model - Concrete class instances members can book"""
from datetime import timedelta

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from gymflow.core.database import Base


class ScheduledClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, nullable=False, index=True)

    # NULL для разовых занятий без шаблона
    template_id = Column(
        Integer,
        ForeignKey("class_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name = Column(String(100), nullable=False)
    class_type = Column(String(20), default="group", nullable=False)

    # Локальное время организации, без таймзоны
    start_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)

    capacity = Column(Integer, nullable=True)  # NULL = без ограничения
    location = Column(String(255), nullable=True)
    coach_id = Column(Integer, nullable=True)
    color = Column(String(7), default="#3b82f6", nullable=False)

    requires_subscription = Column(Boolean, default=True, nullable=False)
    drop_in_price = Column(Numeric(10, 2), nullable=True)

    # scheduled, cancelled
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relations
    template = relationship("ClassTemplate", back_populates="classes")

    __table_args__ = (
        # Поиск занятия в конкретном слоте при генерации
        Index("ix_classes_org_start", "org_id", "start_time"),
        Index("ix_classes_status_start", "status", "start_time"),
    )

    @property
    def end_time(self):
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    def __repr__(self):
        return f"<ScheduledClass(id={self.id}, name='{self.name}', start={self.start_time}, status={self.status})>"
