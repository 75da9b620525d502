# realty_crm/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# People / teams
# -----------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, unique=True)
    user_code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    role: Mapped[str] = mapped_column(String(40), nullable=False, default="agent")  # admin|operations|team_leader|agent|...
    # legacy single-leader pointer, still honored when resolving team members
    assigned_to: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class TeamAgent(Base):
    __tablename__ = "team_agents"
    __table_args__ = (UniqueConstraint("team_leader_id", "agent_id", name="uq_team_agents_leader_agent"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_leader_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    agent_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Listings
# -----------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Status(Base):
    __tablename__ = "statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6B7280")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        CheckConstraint("property_type IN ('sale', 'rent')", name="ck_properties_property_type"),
        Index("ix_properties_closed_date_type", "closed_date", "property_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reference_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)
    property_type: Mapped[str] = mapped_column(String(10), nullable=False, default="sale")
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    status_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("statuses.id"), nullable=True)

    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    building_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    owner_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    surface: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sold_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    agent_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    owner_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leads.id"), nullable=True)

    closed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    category: Mapped["Category"] = relationship()
    status: Mapped[Optional["Status"]] = relationship()
    agent: Mapped[Optional["User"]] = relationship(foreign_keys=[agent_id])
    referrals: Mapped[List["PropertyReferral"]] = relationship(back_populates="property", cascade="all, delete-orphan")


class PropertyReferral(Base):
    """Who brought a listing in. Internal referrals (employee_id set, external false) earn referral commission."""

    __tablename__ = "property_referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    referral_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="referrals")


class ReferenceSequence(Base):
    """Monotonic counter per reference-number scope ("global" or "S:W:26")."""

    __tablename__ = "reference_sequences"

    scope: Mapped[str] = mapped_column(String(40), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Leads
# -----------------------------
class LeadStatus(Base):
    __tablename__ = "lead_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status_name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_be_referred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ReferenceSource(Base):
    __tablename__ = "reference_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # db column is "date"
    lead_date: Mapped[date] = mapped_column("date", Date, nullable=False, default=lambda: datetime.utcnow().date(), index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(80), nullable=False, default="Active")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    reference_source_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("reference_sources.id"), nullable=True)
    agent_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    operations_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    added_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    referrals: Mapped[List["LeadReferral"]] = relationship(back_populates="lead", cascade="all, delete-orphan")


class LeadReferral(Base):
    __tablename__ = "lead_referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_id: Mapped[int] = mapped_column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="employee")  # employee|custom
    referral_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    lead: Mapped["Lead"] = relationship(back_populates="referrals")


# -----------------------------
# Viewings
# -----------------------------
class Viewing(Base):
    __tablename__ = "viewings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leads.id"), nullable=True)
    agent_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    viewing_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    viewing_time: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)  # HH:MM
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="Scheduled")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Reports
# -----------------------------
class DCSRReport(Base):
    __tablename__ = "dcsr_monthly_reports"
    __table_args__ = (
        UniqueConstraint("start_date", "end_date", name="uq_dcsr_monthly_reports_range"),
        CheckConstraint("year >= 2020", name="dcsr_monthly_reports_year_check"),
        CheckConstraint("month BETWEEN 1 AND 12", name="dcsr_monthly_reports_month_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # nullable for legacy month-only rows
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    listings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leads_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rent_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    viewings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AgentReport(Base):
    """Per-agent activity and commission snapshot for a date range. `boosts` is entered by hand and survives recalculation."""

    __tablename__ = "agent_monthly_reports"
    __table_args__ = (
        UniqueConstraint("agent_id", "start_date", "end_date", name="uq_agent_monthly_reports_agent_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    boosts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    listings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lead_sources: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # source name -> count
    viewings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sales_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    agent_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    finders_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    referral_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    team_leader_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    administration_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    referral_received_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referral_received_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    referrals_on_properties_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referrals_on_properties_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    agent: Mapped["User"] = relationship(foreign_keys=[agent_id])


# -----------------------------
# Calendar / reminders
# -----------------------------
class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    attendees: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)  # user names

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class ReminderTracking(Base):
    __tablename__ = "reminder_tracking"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", "reminder_type", name="uq_reminder_tracking_event_user_type"),
        Index("ix_reminder_tracking_status_scheduled", "status", "scheduled_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 1_day|same_day|1_hour
    scheduled_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending|claimed|sent|skipped
    skip_reason: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    event_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=True)
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Setting(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    setting_key: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    setting_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    setting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="string")  # string|boolean|number|json
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(40), nullable=False, default="general")
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
