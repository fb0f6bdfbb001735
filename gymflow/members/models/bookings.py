"""Booking Model - Member reservations and waitlist entries for classes"""
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    String,
    Text,
    Boolean,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from gymflow.core.database import Base
from gymflow.staff.models.classes import ScheduledClass
from .subscriptions import Subscription


class BookingStatus(str, Enum):
    """Статус бронирования"""
    confirmed = "confirmed"  # Место подтверждено
    waitlist = "waitlist"    # В листе ожидания
    cancelled = "cancelled"  # Отменено участником или администратором
    no_show = "no_show"      # Не пришел
    attended = "attended"    # Отмечен на занятии


ACTIVE_BOOKING_STATUSES = (BookingStatus.confirmed.value, BookingStatus.waitlist.value)

_ACTIVE_WHERE = text("status IN ('confirmed', 'waitlist')")
_WAITLIST_WHERE = text("status = 'waitlist'")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)

    class_id = Column(
        Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id = Column(Integer, nullable=False, index=True)
    subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True
    )

    status = Column(String(20), default=BookingStatus.confirmed.value, nullable=False)

    # Позиция в листе ожидания, только пока status = waitlist
    waitlist_position = Column(Integer, nullable=True)

    is_drop_in = Column(Boolean, default=False, nullable=False)
    # Сколько занятий списано с абонемента (возвращается при отмене)
    sessions_deducted = Column(Integer, default=0, nullable=False)

    # Timestamps; created_at is the waitlist tie-break
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    no_show_at = Column(DateTime, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)

    scheduled_class = relationship(ScheduledClass)
    subscription = relationship(Subscription)

    __table_args__ = (
        # One active booking per member and class
        Index(
            "uq_bookings_active_member",
            "class_id",
            "member_id",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        # Waitlist positions are unique within a class
        Index(
            "uq_bookings_waitlist_position",
            "class_id",
            "waitlist_position",
            unique=True,
            postgresql_where=_WAITLIST_WHERE,
            sqlite_where=_WAITLIST_WHERE,
        ),
        Index("ix_bookings_class_status", "class_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def __repr__(self):
        return f"<Booking(id={self.id}, class_id={self.class_id}, member_id={self.member_id}, status={self.status})>"
