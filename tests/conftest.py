import os
import datetime
import pytest

# Set TESTING before any loanly imports
os.environ["TESTING"] = "true"
os.environ.setdefault("LOANLY_PASSWORD_ROUNDS", "1000")

from loanly.core.db import Base, make_engine, make_session, run_in_transaction
from loanly.core.auth import Principal
from loanly.core.items import Catalog
from loanly.core.lending import Lending
from loanly.core.models import Role
from loanly.core.patrons import Patrons

NOW = datetime.datetime(2025, 10, 1, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def engine(tmp_path):
    # File backed so that worker threads get real, separate connections
    engine = make_engine(f"sqlite:///{tmp_path / 'loanly.db'}")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def Session(engine):
    Session = make_session(engine)
    yield Session
    Session.remove()


@pytest.fixture
def lending(Session):
    return Lending(session=Session, clock=lambda: NOW)


def _principal(Session, name, email, role=Role.USER):
    patron = run_in_transaction(
        lambda db: Patrons.add(db, name, email, role), session_factory=Session
    )
    return Principal(patron_id=patron.id, role=role)


@pytest.fixture
def admin(Session):
    return _principal(Session, "Ava Admin", "admin@example.com", Role.ADMIN)


@pytest.fixture
def alice(Session):
    return _principal(Session, "Alice Reader", "alice@example.com")


@pytest.fixture
def bob(Session):
    return _principal(Session, "Bob Reader", "bob@example.com")


@pytest.fixture
def make_patron(Session):
    def factory(name, email, role=Role.USER):
        return _principal(Session, name, email, role)
    return factory


@pytest.fixture
def make_item(Session):
    def factory(copies=1, title="Dune"):
        item = run_in_transaction(
            lambda db: Catalog.add(db, title, copies), session_factory=Session
        )
        return item.id
    return factory


@pytest.fixture
def available(Session):
    """Reads an item's counter straight from the database."""
    def read(item_id):
        return run_in_transaction(
            lambda db: Catalog.find(db, item_id).available_copies,
            session_factory=Session,
        )
    return read
