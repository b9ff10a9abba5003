from sqlalchemy import create_engine, event, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

ORDER_STATUSES = ("Cleared", "Refunded", "Cancelled")
TRANSACTION_STATUSES = ("Pending", "Cleared", "Declined", "Refunded", "Partially refunded")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(settings) -> Engine:
    url = settings.database_url
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": settings.db_timeout})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    # Waiting on the pool counts against the same per-call budget
    return create_engine(url, pool_pre_ping=True, pool_timeout=settings.db_timeout)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the schema and fill the status lookup tables on first run."""
    from storefront.models import Status, TransactionStatus

    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        for model, names in ((Status, ORDER_STATUSES), (TransactionStatus, TRANSACTION_STATUSES)):
            if conn.execute(select(func.count()).select_from(model)).scalar():
                continue
            conn.execute(
                insert(model),
                [{"id": i, "name": name} for i, name in enumerate(names, start=1)],
            )
