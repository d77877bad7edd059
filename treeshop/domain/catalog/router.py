"""Catalog router - admin endpoints for the live pricing catalog"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import AdminIdentity, get_current_admin
from ...database import get_db
from .repository import CatalogRepository, package_to_dict, service_to_dict, template_to_dict
from .schemas import PackageResponse, PackageUpdate, ServiceResponse, TemplateResponse
from .seed import seed_default_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/catalog", tags=["Catalog"])


@router.get("/templates", response_model=list[TemplateResponse])
async def list_templates(
    _admin: AdminIdentity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [template_to_dict(t) for t in CatalogRepository.get_templates(db)]


@router.get("/packages", response_model=list[PackageResponse])
async def list_packages(
    _admin: AdminIdentity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [package_to_dict(p) for p in CatalogRepository.get_packages(db)]


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(
    _admin: AdminIdentity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [service_to_dict(s) for s in CatalogRepository.get_services(db)]


@router.patch("/packages/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: str,
    data: PackageUpdate,
    admin: AdminIdentity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Edit a live package. Already-generated proposals are unaffected because
    they price from their own snapshot.
    """
    package = CatalogRepository.get_package(db, package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")

    package = CatalogRepository.update_package(
        db,
        package,
        label=data.label,
        price_per_acre=data.pricePerAcre,
        description=data.description,
        is_active=data.isActive,
    )
    logger.info(f"💲 Package {package_id} updated by {admin.uid}")
    return package_to_dict(package)


@router.post("/seed")
async def seed_catalog(
    _admin: AdminIdentity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Insert the default DBH packages, services, terms and template"""
    created = seed_default_catalog(db)
    return {"message": "Catalog seeded", "created": created}
