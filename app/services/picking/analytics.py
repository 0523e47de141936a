"""Read-only picking performance statistics."""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
import uuid

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.picking import PickingSession, PickingSessionStatus
from app.schemas.picking import PickerStatsResponse, WarehouseStatsResponse


def _round(value: Optional[float]) -> Optional[float]:
    return round(float(value), 2) if value is not None else None


def day_bounds(day: date):
    """[00:00 UTC, next 00:00 UTC) for a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class PickingAnalyticsService:
    """Aggregates over completed and running picking sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_picker_stats(
        self,
        organization_id: uuid.UUID,
        picker_id: uuid.UUID,
        date_from: datetime,
        date_to: datetime,
    ) -> PickerStatsResponse:
        """Totals and averages for one picker over sessions started in the range."""
        stmt = select(
            func.count(PickingSession.id),
            func.coalesce(func.sum(PickingSession.picked_items), 0),
            func.avg(PickingSession.duration_minutes),
            func.avg(PickingSession.items_per_minute),
            func.avg(PickingSession.accuracy),
            func.coalesce(func.sum(case(
                (PickingSession.status == PickingSessionStatus.COMPLETED.value, 1), else_=0
            )), 0),
            func.coalesce(func.sum(case(
                (PickingSession.status == PickingSessionStatus.COMPLETED_WITH_ISSUES.value, 1), else_=0
            )), 0),
        ).where(
            PickingSession.organization_id == organization_id,
            PickingSession.picker_id == picker_id,
            PickingSession.started_at >= date_from,
            PickingSession.started_at <= date_to,
        )
        row = (await self.db.execute(stmt)).one()

        return PickerStatsResponse(
            picker_id=picker_id,
            date_from=date_from,
            date_to=date_to,
            total_sessions=row[0] or 0,
            total_items_picked=int(row[1] or 0),
            avg_duration=_round(row[2]),
            avg_items_per_minute=_round(row[3]),
            avg_accuracy=_round(row[4]),
            completed_sessions=int(row[5] or 0),
            sessions_with_issues=int(row[6] or 0),
        )

    async def get_warehouse_stats(
        self,
        organization_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        day: date,
    ) -> WarehouseStatsResponse:
        """Activity of one warehouse over a UTC calendar day."""
        start, end = day_bounds(day)
        stmt = select(
            func.count(func.distinct(PickingSession.picker_id)),
            func.count(PickingSession.id),
            func.coalesce(func.sum(PickingSession.total_items), 0),
            func.coalesce(func.sum(PickingSession.picked_items), 0),
            func.coalesce(func.sum(PickingSession.total_orders), 0),
            func.coalesce(func.sum(PickingSession.completed_orders), 0),
            func.avg(PickingSession.duration_minutes),
        ).where(
            PickingSession.organization_id == organization_id,
            PickingSession.warehouse_id == warehouse_id,
            PickingSession.started_at >= start,
            PickingSession.started_at < end,
        )
        row = (await self.db.execute(stmt)).one()

        return WarehouseStatsResponse(
            warehouse_id=warehouse_id,
            day=day,
            active_pickers=row[0] or 0,
            total_sessions=row[1] or 0,
            total_items=int(row[2] or 0),
            picked_items=int(row[3] or 0),
            total_orders=int(row[4] or 0),
            completed_orders=int(row[5] or 0),
            avg_session_duration=_round(row[6]),
        )
