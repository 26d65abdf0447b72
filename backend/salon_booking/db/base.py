from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base
from salon_booking.core import config

SERVICE_CATEGORIES = ("grooming", "daycare", "event")
APPOINTMENT_STATUSES = ("pending", "approved", "cancelled", "matched")
APPOINTMENT_KINDS = ("private", "business", "event")
PAYMENT_STATUSES = ("unpaid", "paid", "partial")
MEETING_STATUSES = ("proposed", "locking", "booked")
INVITE_STATUSES = ("uninvited", "sent", "accepted", "stale")
INVITE_SOURCES = ("individual", "category")


class Resource(Base):
    """Bookable station (grooming table, event room)."""

    __tablename__ = "resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    service_category: Mapped[str] = mapped_column(
        String(20), nullable=False, default="grooming", index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Used when a supporting duration rule carries no explicit minutes
    base_duration_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60
    )
    slot_interval_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: config.DEFAULT_SLOT_INTERVAL_MINUTES
    )
    buffer_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: config.DEFAULT_BUFFER_MINUTES
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    operating_hours: Mapped[List["ResourceOperatingHours"]] = relationship(
        back_populates="resource", cascade="all, delete-orphan"
    )


class SubjectType(Base):
    """Breed-equivalent used as the duration lookup key."""

    __tablename__ = "subject_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(150), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    # Customer category targeted by category invites
    customer_type_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Subject(Base):
    """Entity receiving the service (an animal record)."""

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("subject_types.id"), nullable=True
    )
    size_class: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )


class DurationRule(Base):
    """(subject type x resource) -> minutes, or a tombstone."""

    __tablename__ = "duration_rules"
    __table_args__ = (
        UniqueConstraint("subject_type_id", "resource_id", name="uq_duration_rule_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    subject_type_id: Mapped[int] = mapped_column(
        ForeignKey("subject_types.id"), nullable=False, index=True
    )
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("resources.id"), nullable=False, index=True
    )
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_supported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    remote_booking_allowed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    requires_staff_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )


class BusinessHours(Base):
    """Global weekday opening interval (weekday 0 = Monday)."""

    __tablename__ = "business_hours"
    __table_args__ = (CheckConstraint("close_time > open_time", name="ck_business_hours"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)


class ResourceOperatingHours(Base):
    __tablename__ = "resource_operating_hours"
    __table_args__ = (
        CheckConstraint("close_time > open_time", name="ck_resource_hours"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)

    resource: Mapped[Resource] = relationship(back_populates="operating_hours")


class ResourceConstraint(Base):
    """Dated closure (negative) or extra opening (positive) on a station."""

    __tablename__ = "resource_constraints"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_resource_constraint_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_positive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class DaycareCapacityLimit(Base):
    __tablename__ = "daycare_capacity_limits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    total_limit: Mapped[int] = mapped_column(Integer, nullable=False)


class CalendarSettings(Base):
    """Singleton booking horizon and manager display hours."""

    __tablename__ = "calendar_settings"
    __table_args__ = (
        CheckConstraint("open_days_ahead >= 0", name="ck_open_days_ahead"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    open_days_ahead: Mapped[int] = mapped_column(Integer, nullable=False)
    display_start_time: Mapped[time] = mapped_column(Time, nullable=False)
    display_end_time: Mapped[time] = mapped_column(Time, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


appointment_subjects = Table(
    "appointment_subjects",
    Base.metadata,
    Column(
        "appointment_id",
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("subject_id", ForeignKey("subjects.id"), primary_key=True),
)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_appointment_range"),
        Index("ix_appointments_resource_window", "resource_id", "start_at", "end_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Null only for resource-less categories (daycare)
    resource_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("resources.id"), nullable=True
    )
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="unpaid"
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="business")
    service_category: Mapped[str] = mapped_column(
        String(20), nullable=False, default="grooming"
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    subject_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("subjects.id"), nullable=True
    )
    group_id: Mapped[Optional[str]] = mapped_column(
        String(36), nullable=True, index=True
    )
    manual_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    subjects: Mapped[List[Subject]] = relationship(secondary=appointment_subjects)


class ProposedMeeting(Base):
    __tablename__ = "proposed_meetings"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_proposed_meeting_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    service_category: Mapped[str] = mapped_column(
        String(20), nullable=False, default="grooming"
    )
    title: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    code: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="proposed")
    appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    # Reschedule proposals move this appointment instead of booking a new one
    reschedule_appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    reschedule_customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )
    reschedule_subject_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("subjects.id"), nullable=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    invites: Mapped[List["ProposedMeetingInvite"]] = relationship(
        back_populates="meeting", order_by="ProposedMeetingInvite.id"
    )


class ProposedMeetingInvite(Base):
    __tablename__ = "proposed_meeting_invites"
    __table_args__ = (
        UniqueConstraint("meeting_id", "customer_id", name="uq_invite_meeting_customer"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("proposed_meetings.id"), nullable=False, index=True
    )
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="uninvited")
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="individual")
    source_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notification_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    last_delivery_status: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    meeting: Mapped[ProposedMeeting] = relationship(back_populates="invites")


class ProposedMeetingCategory(Base):
    """Customer category allowed to accept a proposed meeting."""

    __tablename__ = "proposed_meeting_categories"
    __table_args__ = (
        UniqueConstraint(
            "meeting_id", "customer_type_id", name="uq_meeting_category"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("proposed_meetings.id"), nullable=False, index=True
    )
    customer_type_id: Mapped[int] = mapped_column(Integer, nullable=False)
