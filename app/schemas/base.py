"""
Base Schema Classes for Pydantic Models

Response schemas that read from ORM rows inherit from BaseResponseSchema;
master and bulk-upload bodies inherit from BaseCreateSchema / BaseUpdateSchema so
unknown keys are dropped before they reach pricing code; operation requests
inherit from BaseRequestSchema, which rejects them.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Features:
    - Automatically handles UUID -> string serialization in JSON
    - Money stays Decimal internally and is rendered as a 2dp string
    - Enables from_attributes for ORM compatibility

    Usage:
        class InvoiceResponse(BaseResponseSchema):
            id: UUID
            invoice_number: str
            total_amount: Decimal
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
            Decimal: lambda v: f"{v:.2f}",
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored, every field the service uses is typed.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseRequestSchema(BaseModel):
    """
    Base class for operation requests (resolve, upsert, reconcile, pay).

    Unknown keys are rejected so a misspelt field such as "overides" fails
    validation instead of being silently dropped.
    """
    model_config = ConfigDict(
        extra='forbid',
        str_strip_whitespace=True,
    )
