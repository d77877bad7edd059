import pytest

from treeshop.domain.catalog.repository import CatalogRepository
from treeshop.domain.catalog.seed import DEFAULT_TEMPLATE_ID
from treeshop.domain.proposals.errors import ProposalNotFoundError
from treeshop.domain.proposals.snapshots import SnapshotStore
from treeshop.models import ImmutableRecordError, Proposal, ProposalEvent, ProposalSnapshot, ProposalTemplate

from .conftest import make_generate_request


def test_snapshot_copies_active_catalog(db):
    view = SnapshotStore(db).create_snapshot(DEFAULT_TEMPLATE_ID)
    db.commit()

    assert view.templateId == DEFAULT_TEMPLATE_ID
    assert view.version == 1
    assert set(view.packages) == {"small", "medium", "large", "xlarge"}
    assert view.packages["medium"]["pricePerAcre"] == 2500
    assert "land-grading" in view.services
    assert view.legalTerms["id"] == "standard-terms"


def test_snapshot_is_unaffected_by_later_catalog_edits(db):
    store = SnapshotStore(db)
    view = store.create_snapshot(DEFAULT_TEMPLATE_ID)
    db.commit()

    CatalogRepository.update_package(db, CatalogRepository.get_package(db, "medium"), price_per_acre=3000)

    assert store.get(view.id).packages["medium"]["pricePerAcre"] == 2500


def test_view_mutation_does_not_reach_stored_snapshot(db):
    store = SnapshotStore(db)
    view = store.create_snapshot(DEFAULT_TEMPLATE_ID)
    db.commit()

    view.packages["medium"]["pricePerAcre"] = 1

    assert store.get(view.id).packages["medium"]["pricePerAcre"] == 2500


def test_generated_proposal_keeps_its_price_after_catalog_change(db, service, admin):
    first_id = service.generate(make_generate_request(), admin).proposalId

    CatalogRepository.update_package(db, CatalogRepository.get_package(db, "medium"), price_per_acre=3000)
    second_id = service.generate(make_generate_request(), admin).proposalId

    assert db.get(Proposal, first_id).computed["total"] == 6562.5
    assert db.get(Proposal, second_id).computed["total"] == 7875


def test_snapshot_rows_are_write_once(db):
    view = SnapshotStore(db).create_snapshot(DEFAULT_TEMPLATE_ID)
    db.commit()

    snapshot = db.get(ProposalSnapshot, view.id)
    snapshot.packages = {}
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    snapshot = db.get(ProposalSnapshot, view.id)
    db.delete(snapshot)
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_event_rows_are_write_once(db, draft_proposal_id):
    event = db.query(ProposalEvent).filter(ProposalEvent.proposal_id == draft_proposal_id).one()

    event.type = "PAID"
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_unknown_or_archived_template_is_rejected(db):
    store = SnapshotStore(db)
    with pytest.raises(ProposalNotFoundError):
        store.create_snapshot("no-such-template")

    template = db.get(ProposalTemplate, DEFAULT_TEMPLATE_ID)
    template.status = "archived"
    db.commit()

    with pytest.raises(ProposalNotFoundError):
        store.create_snapshot(DEFAULT_TEMPLATE_ID)
