"""Pydantic schemas for reference masters and distance classification."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, BaseRequestSchema
from app.models.reference import DistanceCategory


# ==================== Mode / Service Type ====================

class CodeTitleCreate(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True


class CodeTitleResponse(BaseResponseSchema):
    id: UUID
    code: str
    title: str
    is_active: bool


class DistanceSlabCreate(BaseCreateSchema):
    code: DistanceCategory
    title: str = Field(..., min_length=1, max_length=100)


class DistanceSlabResponse(BaseResponseSchema):
    id: UUID
    code: str
    title: str


# ==================== Metro City / State Adjacency ====================

class MetroCityCreate(BaseCreateSchema):
    city: str = Field(..., min_length=1, max_length=100)
    state_code: str = Field(..., min_length=2, max_length=5)
    is_active: bool = True


class MetroCityResponse(BaseResponseSchema):
    id: UUID
    city: str
    state_code: str
    is_active: bool


class StateNeighborCreate(BaseCreateSchema):
    state_code: str = Field(..., min_length=2, max_length=5)
    neighbor_state_code: str = Field(..., min_length=2, max_length=5)

    @model_validator(mode="after")
    def states_differ(self):
        if self.state_code.upper() == self.neighbor_state_code.upper():
            raise ValueError("A state cannot neighbour itself")
        return self


class StateNeighborResponse(BaseResponseSchema):
    id: UUID
    state_code: str
    neighbor_state_code: str


# ==================== Weight Slab ====================

class WeightSlabCreate(BaseCreateSchema):
    slab_name: str = Field(..., min_length=1, max_length=100)
    min_weight_grams: int = Field(..., ge=0)
    max_weight_grams: int = Field(..., gt=0)
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.min_weight_grams >= self.max_weight_grams:
            raise ValueError("min_weight_grams must be less than max_weight_grams")
        return self


class WeightSlabUpdate(BaseUpdateSchema):
    slab_name: Optional[str] = Field(None, min_length=1, max_length=100)
    min_weight_grams: Optional[int] = Field(None, ge=0)
    max_weight_grams: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class WeightSlabResponse(BaseResponseSchema):
    id: UUID
    slab_name: str
    min_weight_grams: int
    max_weight_grams: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ==================== Distance Classification ====================

class ClassifyDistanceRequest(BaseRequestSchema):
    origin_address: str = Field(..., min_length=1)
    destination_address: str = Field(..., min_length=1)


class ParsedAddressResponse(BaseResponseSchema):
    city: Optional[str] = None
    state_code: Optional[str] = None
    pincode: Optional[str] = None


class DistanceClassificationResponse(BaseResponseSchema):
    category: DistanceCategory
    title: Optional[str] = None
    origin_state: Optional[str] = None
    dest_state: Optional[str] = None
    is_neighbor: bool = False
    is_metro_pair: bool = False
    origin: ParsedAddressResponse
    destination: ParsedAddressResponse


class WeightSlabListResponse(BaseResponseSchema):
    items: List[WeightSlabResponse]
    total: int
