"""
Proposal snapshot store

Copies the template and the live catalog by value at generation time so later
catalog edits never leak into an already-issued proposal. Snapshots are
write-once: there is no update or delete here, and the ORM rejects both.
"""

import copy
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ProposalSnapshot
from ..catalog.repository import (
    CatalogRepository,
    legal_terms_to_dict,
    package_to_dict,
    service_to_dict,
    template_to_dict,
)
from .errors import ProposalNotFoundError
from .schemas import ProposalSnapshotView

logger = logging.getLogger(__name__)


def snapshot_to_view(snapshot: ProposalSnapshot) -> ProposalSnapshotView:
    """Build a view holding its own copies of the stored JSON"""
    return ProposalSnapshotView(
        id=snapshot.id,
        templateId=snapshot.template_id,
        version=snapshot.template_version,
        template=copy.deepcopy(snapshot.template),
        packages=copy.deepcopy(snapshot.packages),
        services=copy.deepcopy(snapshot.services),
        legalTerms=copy.deepcopy(snapshot.legal_terms),
        createdAt=snapshot.created_at,
    )


class SnapshotStore:
    def __init__(self, db: Session):
        self.db = db
        self.catalog = CatalogRepository()

    def create_snapshot(self, template_id: str) -> ProposalSnapshotView:
        """Capture template + active packages/services/terms. Added to the session, not committed."""
        template = self.catalog.get_template(self.db, template_id)
        if not template or template.status == "archived":
            raise ProposalNotFoundError(f"Template {template_id} not found")

        terms = self.catalog.get_active_legal_terms(self.db)
        snapshot = ProposalSnapshot(
            template_id=template.id,
            template_version=template.version,
            template=copy.deepcopy(template_to_dict(template)),
            packages={p.id: package_to_dict(p) for p in self.catalog.get_packages(self.db)},
            services={s.id: service_to_dict(s) for s in self.catalog.get_services(self.db)},
            legal_terms=legal_terms_to_dict(terms) if terms else None,
        )
        self.db.add(snapshot)
        self.db.flush()

        logger.info(
            f"📸 Snapshot {snapshot.id} captured for template {template.id} v{template.version} "
            f"({len(snapshot.packages)} packages, {len(snapshot.services)} services)"
        )
        return snapshot_to_view(snapshot)

    def get(self, snapshot_id: str) -> Optional[ProposalSnapshotView]:
        snapshot = self.db.get(ProposalSnapshot, snapshot_id)
        return snapshot_to_view(snapshot) if snapshot else None
