from fastapi import APIRouter

from app.api.v1.endpoints import picking_sessions

api_router = APIRouter(prefix="/api/v1")

# Scan-validated warehouse picking
api_router.include_router(
    picking_sessions.router,
    prefix="/picking-sessions",
    tags=["Picking Sessions"]
)
