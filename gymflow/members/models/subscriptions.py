"""Subscription Model - Session balance consumed by bookings"""
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Index,
)
from sqlalchemy.sql import func
from gymflow.core.database import Base


class SubscriptionStatus(str, Enum):
    active = "active"
    paused = "paused"
    cancelled = "cancelled"
    expired = "expired"


class Subscription(Base):
    """
    Абонемент участника. Управляется биллингом; здесь используются
    только статус, период действия и баланс занятий.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    member_id = Column(Integer, nullable=False, index=True)

    status = Column(String(20), default=SubscriptionStatus.active.value, nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    # NULL = безлимит
    sessions_total = Column(Integer, nullable=True)
    sessions_used = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_subscriptions_member_status", "member_id", "status"),)

    @property
    def is_unlimited(self) -> bool:
        return self.sessions_total is None

    @property
    def has_sessions_available(self) -> bool:
        return self.is_unlimited or self.sessions_used < self.sessions_total

    def __repr__(self):
        return f"<Subscription(id={self.id}, member_id={self.member_id}, used={self.sessions_used}/{self.sessions_total})>"
