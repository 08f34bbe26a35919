"""
Front desk dashboard endpoints
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.schemas.directory import DashboardStats, RevenuePoint
from app.services.dashboard_service import get_dashboard_stats, get_revenue_chart
from database import get_async_session

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Today's revenue, appointment and queue counts, and open invoices
    """
    return await get_dashboard_stats(db, clock)


@router.get("/revenue", response_model=List[RevenuePoint])
async def dashboard_revenue(
    days: int = Query(30, ge=1, le=366, description="Number of days, ending today"),
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Daily revenue from settled invoices for the revenue chart
    """
    return await get_revenue_chart(db, clock, days)
