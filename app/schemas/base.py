"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like UUID serialization,
ensuring consistency across all schemas.

RULE: Schemas that read from ORM models MUST inherit from BaseResponseSchema.
Request bodies inherit from BaseCreateSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for schemas that read from ORM rows or cached state.

    Features:
    - Enables from_attributes for ORM compatibility
    - Allows population by field name or alias

    Usage:
        class ActiveSessionBrief(BaseResponseSchema):
            id: UUID
            status: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    These schemas accept string UUIDs from the client and convert to UUID objects.
    No from_attributes needed since these don't read from ORM.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )

