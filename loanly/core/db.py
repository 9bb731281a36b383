import logging
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from loanly.configs import DB_URI, DEBUG
from loanly.core.exceptions import LoanlyAPIError, DatabaseError

logger = logging.getLogger(__name__)

# PostgreSQL serialization_failure and deadlock_detected
SERIALIZATION_FAILURES = {"40001", "40P01"}


def make_engine(uri, echo=False):
    engine_kwargs = {'echo': echo}
    if uri.startswith('sqlite'):
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if ':memory:' in uri:
            # One shared connection, otherwise every thread sees an empty db
            engine_kwargs['poolclass'] = StaticPool
    else:
        engine_kwargs['client_encoding'] = 'utf8'
    return create_engine(uri, **engine_kwargs)


def make_session(bind):
    """Thread-local session registry; objects stay readable after commit."""
    return scoped_session(sessionmaker(
        bind=bind, autocommit=False, autoflush=False, expire_on_commit=False))


engine = make_engine(DB_URI, echo=DEBUG)
session = make_session(engine)


Base = declarative_base()


def is_serialization_failure(error):
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) in SERIALIZATION_FAILURES:
        return True
    return "database is locked" in str(orig)


def run_in_transaction(work, session_factory=None, retries=1):
    """Runs `work(db)` inside one transaction and commits it.

    Domain errors roll back and propagate untouched. A serialization
    failure reruns the whole unit of work up to `retries` times; any
    other storage failure is surfaced as DatabaseError.
    """
    if session_factory is None:
        session_factory = session
    attempt = 0
    while True:
        db = session_factory()
        try:
            result = work(db)
            db.commit()
            return result
        except LoanlyAPIError:
            db.rollback()
            raise
        except OperationalError as e:
            db.rollback()
            if attempt < retries and is_serialization_failure(e):
                attempt += 1
                logger.warning("Serialization failure, retrying transaction: %s", e.orig)
                continue
            raise DatabaseError(f"Transaction failed: {e.orig}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise DatabaseError(f"Transaction failed: {str(e)}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def init(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        return session
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")
