"""Catalog repository - live pricing packages, services, terms and templates"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import LegalTerms, PricingPackage, ProposalTemplate, Service


def package_to_dict(package: PricingPackage) -> dict[str, Any]:
    return {
        "id": package.id,
        "label": package.label,
        "dbh": package.dbh,
        "pricePerAcre": package.price_per_acre,
        "description": package.description or "",
        "isDefault": bool(package.is_default),
        "inclusions": list(package.inclusions or []),
        "exclusions": list(package.exclusions or []),
    }


def service_to_dict(service: Service) -> dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description or "",
        "defaultRate": service.default_rate,
        "unit": service.unit,
        "category": service.category,
        "inclusions": list(service.inclusions or []),
        "exclusions": list(service.exclusions or []),
        "isActive": bool(service.is_active),
    }


def legal_terms_to_dict(terms: LegalTerms) -> dict[str, Any]:
    return {
        "id": terms.id,
        "title": terms.title,
        "bodyRich": terms.body_rich,
        "shortDisclosure": terms.short_disclosure or "",
        "disclaimers": list(terms.disclaimers or []),
        "version": terms.version,
    }


def template_to_dict(template: ProposalTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description or "",
        "status": template.status,
        "version": template.version,
        "blocks": dict(template.blocks or {}),
    }


class CatalogRepository:
    """Repository for catalog database operations"""

    @staticmethod
    def get_template(db: Session, template_id: str) -> Optional[ProposalTemplate]:
        return db.query(ProposalTemplate).filter(ProposalTemplate.id == template_id).first()

    @staticmethod
    def get_templates(db: Session) -> list[ProposalTemplate]:
        return db.query(ProposalTemplate).order_by(ProposalTemplate.id).all()

    @staticmethod
    def get_packages(db: Session, active_only: bool = True) -> list[PricingPackage]:
        query = db.query(PricingPackage)
        if active_only:
            query = query.filter(PricingPackage.is_active.is_(True))
        return query.order_by(PricingPackage.price_per_acre).all()

    @staticmethod
    def get_package(db: Session, package_id: str) -> Optional[PricingPackage]:
        return db.query(PricingPackage).filter(PricingPackage.id == package_id).first()

    @staticmethod
    def get_services(db: Session, active_only: bool = True) -> list[Service]:
        query = db.query(Service)
        if active_only:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.id).all()

    @staticmethod
    def get_active_legal_terms(db: Session) -> Optional[LegalTerms]:
        return (
            db.query(LegalTerms)
            .filter(LegalTerms.is_active.is_(True))
            .order_by(LegalTerms.version.desc())
            .first()
        )

    @staticmethod
    def update_package(db: Session, package: PricingPackage, **updates) -> PricingPackage:
        """Update a package with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(package, key):
                setattr(package, key, value)

        db.commit()
        db.refresh(package)
        return package
