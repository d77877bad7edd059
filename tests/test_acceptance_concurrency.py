import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from treeshop.database import Base
from treeshop.domain.catalog.seed import seed_default_catalog
from treeshop.domain.proposals.errors import ProposalError
from treeshop.domain.proposals.service import ProposalService
from treeshop.models import Proposal, ProposalEvent

from .conftest import BASE_URL, make_generate_request, token_from_url


@pytest.fixture
def file_engine(tmp_path):
    """Separate connections per session so the two accepts really race"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.mark.parametrize("contenders", [2, 5])
def test_only_one_concurrent_accept_wins(file_engine, clients, admin, contenders):
    SessionLocal = sessionmaker(bind=file_engine, autoflush=False)

    with SessionLocal() as setup:
        seed_default_catalog(setup)
        service = ProposalService.from_clients(setup, clients, base_url=BASE_URL)
        proposal_id = service.generate(make_generate_request(), admin).proposalId
        token = token_from_url(service.send(proposal_id, admin).approveUrl)

    barrier = threading.Barrier(contenders)
    outcomes = []
    lock = threading.Lock()

    def contender(n):
        with SessionLocal() as session:
            racer = ProposalService.from_clients(session, clients, base_url=BASE_URL)
            barrier.wait()
            try:
                racer.accept(proposal_id, token, full_name=f"Signer {n}", consent=True)
                outcome = "accepted"
            except ProposalError as e:
                outcome = e.code
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=contender, args=(n,)) for n in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["accepted"] + ["token_used"] * (contenders - 1)

    with SessionLocal() as check:
        proposal = check.get(Proposal, proposal_id)
        assert proposal.status == "accepted"
        assert proposal.token_is_used is True
        accepted_events = (
            check.query(ProposalEvent)
            .filter(ProposalEvent.proposal_id == proposal_id, ProposalEvent.type == "ACCEPTED")
            .count()
        )
        assert accepted_events == 1
