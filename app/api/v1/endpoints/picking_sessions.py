"""Picking session API endpoints for scan-validated warehouse picking."""
from typing import List, Optional
import uuid
from datetime import date, datetime

from fastapi import APIRouter, Query, status

from app.api.deps import DB, OrganizationId, PickingService
from app.schemas.picking import (
    PickingSessionCreate,
    PickingSessionState,
    ScanRequest,
    ScanResult,
    ManualPickRequest,
    ManualPickResult,
    ShortageReportRequest,
    ShortageResult,
    PauseRequest,
    CancelRequest,
    NextItem,
    ActiveSessionBrief,
    PickingStrategyResponse,
    PickerStatsResponse,
    WarehouseStatsResponse,
)
from app.services.picking.analytics import PickingAnalyticsService
from app.services.picking.order_selector import OrderSelectionFilters
from app.services.picking.strategies import list_strategies


router = APIRouter()


# ==================== STRATEGIES ====================

@router.get(
    "/strategies",
    response_model=List[PickingStrategyResponse],
    summary="List Picking Strategies"
)
async def get_strategies():
    """Available picking strategies with their capacity and efficiency."""
    return [
        PickingStrategyResponse(
            id=strategy.id,
            name=strategy.name,
            description=strategy.description,
            max_orders=strategy.max_orders,
            requires_cart=strategy.requires_cart,
            efficiency=strategy.efficiency.value,
            efficiency_modifier=strategy.efficiency_modifier,
        )
        for strategy in list_strategies()
    ]


# ==================== ANALYTICS ====================

@router.get(
    "/analytics/pickers/{picker_id}",
    response_model=PickerStatsResponse,
    summary="Picker Performance"
)
async def get_picker_stats(
    picker_id: uuid.UUID,
    db: DB,
    organization_id: OrganizationId,
    date_from: datetime = Query(...),
    date_to: datetime = Query(...),
):
    service = PickingAnalyticsService(db)
    return await service.get_picker_stats(organization_id, picker_id, date_from, date_to)


@router.get(
    "/analytics/warehouses/{warehouse_id}",
    response_model=WarehouseStatsResponse,
    summary="Warehouse Daily Picking Stats"
)
async def get_warehouse_stats(
    warehouse_id: uuid.UUID,
    db: DB,
    organization_id: OrganizationId,
    day: date = Query(..., description="UTC calendar day"),
):
    service = PickingAnalyticsService(db)
    return await service.get_warehouse_stats(organization_id, warehouse_id, day)


# ==================== SESSIONS ====================

@router.post(
    "",
    response_model=PickingSessionState,
    status_code=status.HTTP_201_CREATED,
    summary="Start Picking Session"
)
async def create_session(
    data: PickingSessionCreate,
    organization_id: OrganizationId,
    service: PickingService,
):
    """
    Start a picking session.

    Orders are taken from `order_ids` when provided, otherwise from the
    warehouse queue (most urgent, then oldest first).
    """
    filters = OrderSelectionFilters(
        carriers=data.carrier_filter,
        priority=data.priority_filter.value if data.priority_filter else None,
    )
    return await service.create_session(
        organization_id=organization_id,
        warehouse_id=data.warehouse_id,
        picker_id=data.picker_id,
        picker_name=data.picker_name,
        strategy=data.strategy,
        order_ids=data.order_ids,
        filters=filters,
        max_orders=data.max_orders,
    )


@router.get(
    "",
    response_model=List[ActiveSessionBrief],
    summary="List Active Sessions"
)
async def list_active_sessions(
    organization_id: OrganizationId,
    service: PickingService,
    warehouse_id: Optional[uuid.UUID] = Query(None),
    picker_id: Optional[uuid.UUID] = Query(None),
):
    """In-progress and paused sessions."""
    return await service.list_active_sessions(organization_id, warehouse_id, picker_id)


@router.get("/{session_id}", response_model=PickingSessionState)
async def get_session(
    session_id: uuid.UUID,
    organization_id: OrganizationId,
    service: PickingService,
):
    return await service.get_session(session_id, organization_id)


@router.get("/{session_id}/next-item", response_model=Optional[NextItem])
async def get_next_item(
    session_id: uuid.UUID,
    organization_id: OrganizationId,
    service: PickingService,
):
    """Next stop on the route, or null when nothing is left to pick."""
    return await service.get_next_item(session_id, organization_id)


# ==================== PICKING ====================

@router.post("/{session_id}/scan", response_model=ScanResult, summary="Scan Item")
async def scan_item(
    session_id: uuid.UUID,
    data: ScanRequest,
    organization_id: OrganizationId,
    service: PickingService,
):
    """
    Validate a barcode scan.

    Rejected scans still return 200 with `valid=false` and an error code.
    """
    return await service.validate_scan(
        session_id,
        data.barcode,
        quantity=data.quantity,
        location_scan=data.location_scan,
        organization_id=organization_id,
    )


@router.post("/{session_id}/manual-pick", response_model=ManualPickResult)
async def manual_pick(
    session_id: uuid.UUID,
    data: ManualPickRequest,
    organization_id: OrganizationId,
    service: PickingService,
):
    return await service.manual_pick(
        session_id,
        data.sku,
        data.quantity,
        data.reason,
        picked_by=data.picked_by,
        organization_id=organization_id,
    )


@router.post("/{session_id}/shortage", response_model=ShortageResult)
async def report_shortage(
    session_id: uuid.UUID,
    data: ShortageReportRequest,
    organization_id: OrganizationId,
    service: PickingService,
):
    return await service.report_shortage(
        session_id,
        data.sku,
        data.expected_quantity,
        data.actual_quantity,
        data.reason,
        organization_id=organization_id,
    )


# ==================== LIFECYCLE ====================

@router.post("/{session_id}/pause", response_model=PickingSessionState)
async def pause_session(
    session_id: uuid.UUID,
    organization_id: OrganizationId,
    service: PickingService,
    data: Optional[PauseRequest] = None,
):
    reason = data.reason if data else None
    return await service.pause_session(session_id, reason, organization_id=organization_id)


@router.post("/{session_id}/resume", response_model=PickingSessionState)
async def resume_session(
    session_id: uuid.UUID,
    organization_id: OrganizationId,
    service: PickingService,
):
    return await service.resume_session(session_id, organization_id=organization_id)


@router.post("/{session_id}/cancel", response_model=PickingSessionState)
async def cancel_session(
    session_id: uuid.UUID,
    data: CancelRequest,
    organization_id: OrganizationId,
    service: PickingService,
):
    """Cancel a session; orders not yet picked go back to the queue."""
    return await service.cancel_session(session_id, data.reason, organization_id=organization_id)


@router.post("/{session_id}/complete", response_model=PickingSessionState)
async def complete_session(
    session_id: uuid.UUID,
    organization_id: OrganizationId,
    service: PickingService,
):
    return await service.complete_session(session_id, organization_id=organization_id)
