"""
Reminder schemas
"""
import datetime
from typing import Optional, List
from pydantic import BaseModel
from app.services.reminder_service import ReminderPriority, ReminderType


class ReminderResponse(BaseModel):
    id: str
    type: ReminderType
    priority: ReminderPriority
    appointment_id: int
    title: str
    message: str
    time: str
    patient: str
    doctor: str
    generated_at: datetime.datetime
    minutes_until: Optional[int] = None
    wait_minutes: Optional[int] = None
    read: bool = False

    model_config = {"from_attributes": True}


class ReminderListResponse(BaseModel):
    generated_at: Optional[datetime.datetime] = None
    total: int
    unread: int
    reminders: List[ReminderResponse]


class ReminderStateResponse(BaseModel):
    reminder_id: str
    stored: bool
