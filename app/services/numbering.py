"""
Human-readable document numbers (APT-20250101-0001, INV-202501-0001, ...)
"""
import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Counter

FORMATS = {
    "patient": "TP-{day}-{seq}",
    "appointment": "APT-{day}-{seq}",
    "invoice": "INV-{month}-{seq}",
    "payment": "PAY-{day}-{seq}",
    "doctor": "DOC-{seq}",
    "service": "SRV-{seq}",
}


def format_number(counter_name: str, value: int, today: datetime.date) -> str:
    template = FORMATS.get(counter_name, counter_name.upper()[:3] + "-{seq}")
    return template.format(
        day=today.strftime("%Y%m%d"),
        month=today.strftime("%Y%m"),
        seq=str(value).zfill(4),
    )


async def next_number(db: AsyncSession, counter_name: str, today: Optional[datetime.date] = None) -> str:
    """Increment the named counter (created on first use) and format it"""
    result = await db.execute(
        select(Counter).filter(Counter.name == counter_name).with_for_update()
    )
    counter = result.scalar_one_or_none()
    if counter is None:
        counter = Counter(name=counter_name, last_value=0)
        db.add(counter)
    counter.last_value = (counter.last_value or 0) + 1
    await db.flush()
    return format_number(counter_name, counter.last_value, today or datetime.date.today())
