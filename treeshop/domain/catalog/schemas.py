"""Catalog schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class PackageResponse(BaseModel):
    id: str
    label: str
    dbh: str
    pricePerAcre: float
    description: str
    isDefault: bool
    inclusions: list[str]
    exclusions: list[str]


class ServiceResponse(BaseModel):
    id: str
    name: str
    description: str
    defaultRate: float
    unit: str
    category: str
    inclusions: list[str]
    exclusions: list[str]
    isActive: bool


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    status: str
    version: int
    blocks: dict


class PackageUpdate(BaseModel):
    """Schema for updating a live pricing package"""

    label: Optional[str] = None
    pricePerAcre: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    isActive: Optional[bool] = None
