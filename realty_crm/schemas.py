# realty_crm/schemas.py
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Optional, List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    property_type: Literal["sale", "rent"] = "sale"
    category_id: int
    status_id: Optional[int] = None
    location: Optional[str] = None
    building_name: Optional[str] = None
    owner_name: Optional[str] = None
    phone_number: Optional[str] = None
    surface: Optional[float] = None
    price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    agent_id: Optional[int] = None
    owner_id: Optional[int] = None


class PropertyUpdate(BaseModel):
    property_type: Optional[Literal["sale", "rent"]] = None
    category_id: Optional[int] = None
    status_id: Optional[int] = None
    location: Optional[str] = None
    building_name: Optional[str] = None
    owner_name: Optional[str] = None
    phone_number: Optional[str] = None
    surface: Optional[float] = None
    price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    agent_id: Optional[int] = None
    owner_id: Optional[int] = None


class PropertyClose(BaseModel):
    closed_date: dt.date
    sold_amount: Optional[float] = Field(default=None, ge=0)


class PropertyOut(PropertyCreate):
    id: int
    reference_number: str
    sold_amount: Optional[float] = None
    closed_date: Optional[dt.date] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyReferralCreate(BaseModel):
    employee_id: Optional[int] = None
    name: Optional[str] = Field(default=None, max_length=160)
    referral_date: Optional[dt.date] = None


class PropertyReferralOut(BaseModel):
    id: int
    property_id: int
    employee_id: Optional[int] = None
    name: str
    external: bool
    referral_date: dt.date

    model_config = ConfigDict(from_attributes=True)


# -------------------- Leads --------------------

class LeadCreate(BaseModel):
    customer_name: str = Field(min_length=2, max_length=255)
    date: Optional[dt.date] = None
    phone_number: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None
    notes: Optional[str] = None
    reference_source_id: Optional[int] = None
    agent_id: Optional[int] = None
    operations_id: Optional[int] = None
    added_by_id: Optional[int] = None


class LeadUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    date: Optional[dt.date] = None
    phone_number: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None
    notes: Optional[str] = None
    reference_source_id: Optional[int] = None
    agent_id: Optional[int] = None
    operations_id: Optional[int] = None


class LeadOut(BaseModel):
    id: int
    date: dt.date = Field(validation_alias=AliasChoices("lead_date", "date"))
    customer_name: str
    phone_number: Optional[str] = None
    price: Optional[float] = None
    status: str
    notes: Optional[str] = None
    reference_source_id: Optional[int] = None
    agent_id: Optional[int] = None
    operations_id: int
    added_by_id: Optional[int] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class LeadStatusOut(BaseModel):
    id: int
    status_name: str
    code: Optional[str] = None
    color: Optional[str] = None
    is_active: bool
    can_be_referred: bool

    model_config = ConfigDict(from_attributes=True)


class LeadReferralCreate(BaseModel):
    type: Literal["employee", "custom"] = "employee"
    agent_id: Optional[int] = None
    name: Optional[str] = None
    referral_date: Optional[dt.datetime] = None


class LeadReferralOut(BaseModel):
    id: int
    lead_id: int
    agent_id: Optional[int] = None
    name: str
    type: str
    referral_date: dt.datetime
    external: bool

    model_config = ConfigDict(from_attributes=True)


# -------------------- Viewings --------------------

class ViewingCreate(BaseModel):
    property_id: int
    lead_id: Optional[int] = None
    agent_id: Optional[int] = None
    viewing_date: dt.date
    viewing_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    status: str = "Scheduled"
    notes: Optional[str] = None


class ViewingOut(ViewingCreate):
    id: int
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- DCSR --------------------

class DCSRReportCreate(BaseModel):
    # kept as strings so bad input surfaces as the report's own 400 messages
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class DCSRReportUpdate(BaseModel):
    listings_count: Optional[int] = Field(default=None, ge=0)
    leads_count: Optional[int] = Field(default=None, ge=0)
    sales_count: Optional[int] = Field(default=None, ge=0)
    rent_count: Optional[int] = Field(default=None, ge=0)
    viewings_count: Optional[int] = Field(default=None, ge=0)


class DCSRReportOut(BaseModel):
    id: int
    month: int
    year: int
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    listings_count: int
    leads_count: int
    sales_count: int
    rent_count: int
    viewings_count: int
    created_by: Optional[int] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Agent reports --------------------

class AgentReportCreate(BaseModel):
    agent_id: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    boosts: int = Field(default=0, ge=0)


class AgentReportUpdate(BaseModel):
    boosts: Optional[int] = Field(default=None, ge=0)


class AgentReportOut(BaseModel):
    id: int
    agent_id: int
    month: int
    year: int
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    boosts: int
    listings_count: int
    lead_sources: Optional[Dict[str, int]] = None
    viewings_count: int
    sales_count: int
    sales_amount: float
    agent_commission: float
    finders_commission: float
    referral_commission: float
    team_leader_commission: float
    administration_commission: float
    total_commission: float
    referral_received_count: int
    referral_received_commission: float
    referrals_on_properties_count: int
    referrals_on_properties_commission: float
    created_by: Optional[int] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Settings --------------------

class SettingUpdate(BaseModel):
    value: Any


class SettingItem(BaseModel):
    key: str = Field(min_length=1)
    value: Any = None


class SettingsBulkUpdate(BaseModel):
    settings: List[SettingItem]


# -------------------- Calendar / reminders --------------------

class CalendarEventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: dt.datetime
    end_time: Optional[dt.datetime] = None
    assigned_to: Optional[int] = None
    attendees: List[str] = Field(default_factory=list)


class CalendarEventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    assigned_to: Optional[int] = None
    attendees: Optional[List[str]] = None


class CalendarEventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: dt.datetime
    end_time: Optional[dt.datetime] = None
    created_by: Optional[int] = None
    assigned_to: Optional[int] = None
    attendees: Optional[List[str]] = None

    model_config = ConfigDict(from_attributes=True)


class ReminderTrackingOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    reminder_type: str
    scheduled_time: dt.datetime
    status: str
    skip_reason: Optional[str] = None
    email_sent: bool
    notification_sent: bool
    sent_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)
