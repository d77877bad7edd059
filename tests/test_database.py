import logging

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from treeshop.database import Base, build_engine
from treeshop.models import ProposalEvent


@pytest.fixture
def sqlite_engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


def test_sqlite_connections_enforce_foreign_keys(sqlite_engine):
    with sqlite_engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


def test_event_for_missing_proposal_is_refused(sqlite_engine):
    session = sessionmaker(bind=sqlite_engine)()
    session.add(ProposalEvent(proposal_id="no-such-proposal", type="CREATED", event_metadata={}))

    with pytest.raises(IntegrityError):
        session.commit()
    session.close()


def test_slow_queries_are_logged_past_the_threshold(caplog):
    engine = build_engine("sqlite://", slow_query_threshold=0)

    with caplog.at_level(logging.WARNING, logger="treeshop.database"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert any("Slow query" in record.getMessage() for record in caplog.records)
    engine.dispose()


def test_no_slow_query_logging_without_a_threshold(caplog):
    engine = build_engine("sqlite://")

    with caplog.at_level(logging.WARNING, logger="treeshop.database"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert not any("Slow query" in record.getMessage() for record in caplog.records)
    engine.dispose()
