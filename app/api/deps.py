from typing import Annotated
import uuid
import logging

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.picking.session_service import PickingSessionService, get_picking_service


logger = logging.getLogger(__name__)


async def get_organization_id(
    x_organization_id: Annotated[uuid.UUID, Header(description="Owning organization")],
) -> uuid.UUID:
    """
    Dependency resolving the caller's organization.

    Every picking session, order and cache key is scoped by it; a session of
    another organization is reported as not found.
    """
    return x_organization_id


def get_picking_session_service() -> PickingSessionService:
    """Dependency returning the process-wide picking session service."""
    return get_picking_service()


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
OrganizationId = Annotated[uuid.UUID, Depends(get_organization_id)]
PickingService = Annotated[PickingSessionService, Depends(get_picking_session_service)]
