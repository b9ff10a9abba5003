from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from storefront.database import Base

# Primary keys of the seeded lookup rows, see database.ORDER_STATUSES and
# database.TRANSACTION_STATUSES
ORDER_STATUS_CLEARED = 1
TRANSACTION_STATUS_CLEARED = 2


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())


class Widget(TimestampMixin, Base):
    __tablename__ = "widgets"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    inventory_level = Column(Integer, nullable=False, default=0)
    price = Column(Integer, nullable=False)                 # minor currency units
    image = Column(String(255), nullable=True)


class Status(TimestampMixin, Base):
    __tablename__ = "statuses"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)


class TransactionStatus(TimestampMixin, Base):
    __tablename__ = "transaction_statuses"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(8), nullable=False)
    last_four = Column(String(4), nullable=False, default="")
    bank_return_code = Column(String(255), nullable=False, default="")
    transaction_status_id = Column(Integer, ForeignKey("transaction_statuses.id"), nullable=False)
    expiry_month = Column(Integer, nullable=False, default=0)
    expiry_year = Column(Integer, nullable=False, default=0)


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)     # never plaintext


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    widget_id = Column(Integer, ForeignKey("widgets.id"), nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    status_id = Column(Integer, ForeignKey("statuses.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
