"""Database configuration and initialization."""
import logging
import time
from contextlib import contextmanager

from sqlalchemy import create_engine, text, BigInteger, Integer
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from studio_quotes.exceptions import TransactionTimeoutError

logger = logging.getLogger(__name__)

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerType = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autoflush=False))

DEFAULT_TRANSACTION_TIMEOUT = 10


def init_engine(database_uri, echo=False):
    """Create the engine and bind the scoped session to it."""
    global engine

    if database_uri.startswith('sqlite'):
        engine = create_engine(
            database_uri,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        engine = create_engine(
            database_uri,
            echo=echo,
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )

    db_session.remove()
    db_session.configure(bind=engine)
    Base.query = db_session.query_property()
    return engine


def init_db(app):
    """Initialize database connection."""
    init_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False)
    )

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the metadata."""
    import studio_quotes.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table known to the metadata."""
    import studio_quotes.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


class TransactionBudget:
    """Wall-clock ceiling for a single unit of work."""

    def __init__(self, timeout_seconds):
        self.timeout_seconds = timeout_seconds
        self.started_at = time.monotonic()

    @property
    def elapsed(self):
        return time.monotonic() - self.started_at

    def check(self):
        """Raise if the transaction has run past its budget."""
        if self.timeout_seconds and self.elapsed > self.timeout_seconds:
            raise TransactionTimeoutError(
                f'La transacción excedió el límite de {self.timeout_seconds}s'
            )


@contextmanager
def transaction(session, timeout_seconds=None):
    """
    Run a block as one atomic unit: commit everything or roll back everything.

    Yields a TransactionBudget; per-item loops should call ``budget.check()``.
    On PostgreSQL the same ceiling is pushed down as ``statement_timeout``.
    """
    if timeout_seconds is None:
        timeout_seconds = _configured_timeout()
    budget = TransactionBudget(timeout_seconds)

    bind = session.get_bind()
    if bind is not None and bind.dialect.name == 'postgresql' and timeout_seconds:
        session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}"))

    try:
        yield budget
        budget.check()
        session.commit()
    except Exception:
        session.rollback()
        raise


def _configured_timeout():
    try:
        from flask import current_app
        return current_app.config.get('TRANSACTION_TIMEOUT_SECONDS', DEFAULT_TRANSACTION_TIMEOUT)
    except RuntimeError:
        # Outside an application context (CLI helpers, unit tests)
        return DEFAULT_TRANSACTION_TIMEOUT


# Alias for easier imports
db = db_session
