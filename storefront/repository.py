"""Data access for the checkout flow.

Every public method is one short transaction: open a session, bound it by
the configured timeout, run a single parameterized statement, commit. Errors
from the store propagate unchanged.
"""
import time
from contextlib import contextmanager

import structlog
from sqlalchemy import func, insert, select, text
from sqlalchemy.orm import Session

from storefront.models import Customer, Order, Transaction, User, Widget
from storefront.schemas import (
    CustomerCreate,
    OrderCreate,
    TransactionCreate,
    UserCreate,
    WidgetSchema,
)

logger = structlog.get_logger(__name__)

# SQLite VM instructions between deadline checks
SQLITE_PROGRESS_STEPS = 1000


class Repository:
    def __init__(self, session_factory, timeout: float = 3.0):
        self._session_factory = session_factory
        self.timeout = timeout

    @contextmanager
    def _session(self):
        with self._session_factory.begin() as session:
            cleanup = self._apply_timeout(session)
            try:
                yield session
            finally:
                if cleanup is not None:
                    cleanup()

    def _apply_timeout(self, session: Session):
        dialect = session.get_bind().dialect.name
        millis = int(self.timeout * 1000)

        if dialect == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        elif dialect in ("mysql", "mariadb"):
            session.execute(text(f"SET SESSION max_execution_time = {millis}"))
        elif dialect == "sqlite":
            dbapi_conn = session.connection().connection.dbapi_connection
            deadline = time.monotonic() + self.timeout
            dbapi_conn.set_progress_handler(lambda: time.monotonic() > deadline, SQLITE_PROGRESS_STEPS)
            return lambda: dbapi_conn.set_progress_handler(None, 0)
        return None

    def _insert(self, model, values: dict) -> int:
        stmt = insert(model).values(**values, created_at=func.now(), updated_at=func.now())
        with self._session() as session:
            result = session.execute(stmt)
            new_id = result.inserted_primary_key[0]
        logger.debug("row_inserted", table=model.__tablename__, id=new_id)
        return new_id

    def get_widget(self, widget_id: int) -> WidgetSchema:
        """Raises sqlalchemy.exc.NoResultFound when the id is unknown."""
        with self._session() as session:
            widget = session.execute(select(Widget).where(Widget.id == widget_id)).scalar_one()
            return WidgetSchema.model_validate(widget)

    def insert_transaction(self, txn: TransactionCreate) -> int:
        return self._insert(Transaction, txn.model_dump())

    def insert_order(self, order: OrderCreate) -> int:
        return self._insert(Order, order.model_dump())

    def insert_user(self, user: UserCreate) -> int:
        return self._insert(User, user.model_dump())

    def insert_customer(self, customer: CustomerCreate) -> int:
        return self._insert(Customer, customer.model_dump())
