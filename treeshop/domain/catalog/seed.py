"""Default catalog: DBH packages, add-on services, legal terms and the standard template"""

import logging

from sqlalchemy.orm import Session

from ...models import LegalTerms, PricingPackage, ProposalTemplate, Service

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "standard-mulching"

DEFAULT_PACKAGES = [
    {
        "id": "small",
        "label": '4" DBH Small Package',
        "dbh": '4"',
        "price_per_acre": 2150,
        "description": "Suitable for light brush, saplings, and trees up to 4 inches diameter",
    },
    {
        "id": "medium",
        "label": '6" DBH Medium Package',
        "dbh": '6"',
        "price_per_acre": 2500,
        "description": "Perfect for mixed vegetation, brush, and trees up to 6 inches diameter",
        "is_default": True,
    },
    {
        "id": "large",
        "label": '8" DBH Large Package',
        "dbh": '8"',
        "price_per_acre": 3140,
        "description": "Handles dense forest, mature trees, and vegetation up to 8 inches diameter",
    },
    {
        "id": "xlarge",
        "label": '10" DBH Extra Large Package',
        "dbh": '10"',
        "price_per_acre": 4160,
        "description": "Heavy-duty clearing for large trees and dense forest up to 10 inches diameter",
    },
]

DEFAULT_SERVICES = [
    {
        "id": "stump-grinding",
        "name": "Stump Grinding",
        "description": "Grind stumps below grade",
        "default_rate": 350,
        "unit": "flat_rate",
        "category": "grinding",
    },
    {
        "id": "land-grading",
        "name": "Land Grading",
        "description": "Rough grade cleared area",
        "default_rate": 800,
        "unit": "per_acre",
        "category": "grading",
    },
    {
        "id": "debris-haul",
        "name": "Debris Haul-Off",
        "description": "Remove oversized debris from site",
        "default_rate": 1200,
        "unit": "flat_rate",
        "category": "removal",
    },
]

DEFAULT_TERMS = {
    "id": "standard-terms",
    "title": "Terms & Conditions",
    "body_rich": (
        "<p>A deposit is due upon acceptance to reserve the schedule. The balance is due on "
        "completion. Pricing assumes equipment access of at least 10 feet and clearly marked "
        "property boundaries.</p>"
    ),
    "short_disclosure": "Final pricing confirmed after on-site evaluation.",
    "disclaimers": [
        "Weather permitting - no work during heavy rain or storms",
        "All necessary permits obtained by property owner if required",
    ],
}


def seed_default_catalog(db: Session) -> dict:
    """Insert the default catalog rows that are missing. Existing rows are left alone."""
    created = {"packages": 0, "services": 0, "legal_terms": 0, "templates": 0}

    for data in DEFAULT_PACKAGES:
        if not db.get(PricingPackage, data["id"]):
            db.add(PricingPackage(**data))
            created["packages"] += 1

    for data in DEFAULT_SERVICES:
        if not db.get(Service, data["id"]):
            db.add(Service(**data))
            created["services"] += 1

    if not db.get(LegalTerms, DEFAULT_TERMS["id"]):
        db.add(LegalTerms(**DEFAULT_TERMS))
        created["legal_terms"] += 1

    if not db.get(ProposalTemplate, DEFAULT_TEMPLATE_ID):
        db.add(
            ProposalTemplate(
                id=DEFAULT_TEMPLATE_ID,
                name="Standard Forestry Mulching",
                description="Default land clearing proposal",
                status="active",
                version=1,
                blocks={
                    "header": {"type": "header", "title": "Project Proposal", "order": 1},
                    "pricing": {"type": "pricing", "title": "Investment", "order": 2},
                    "terms": {"type": "terms", "title": "Terms & Conditions", "order": 3},
                    "signature": {"type": "signature", "title": "Acceptance", "order": 4},
                },
                created_by="system",
            )
        )
        created["templates"] += 1

    db.commit()
    logger.info(f"🌱 Catalog seed complete: {created}")
    return created
