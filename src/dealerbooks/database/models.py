"""SQLAlchemy models for dealerbooks database."""

from datetime import datetime, UTC
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


def money_column(**kwargs) -> Column:
    """Fixed-point money column defaulting to zero."""
    kwargs.setdefault("nullable", False)
    return Column(Numeric(15, 2), default=Decimal("0.00"), **kwargs)


class ChartOfAccount(Base):
    """Chart of accounts entry with hierarchical structure."""

    __tablename__ = "chart_of_accounts"

    id = Column(Integer, primary_key=True)
    account_number = Column(String(10), unique=True, nullable=False)
    account_name = Column(String, nullable=False)
    account_type = Column(String(32), nullable=False, default="asset")
    detail_type = Column(String(64), nullable=True)
    parent_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_sub_account = Column(Boolean, default=False, nullable=False)
    description = Column(Text, nullable=True)
    opening_balance = money_column()
    current_balance = money_column()
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    parent = relationship("ChartOfAccount", remote_side=[id], backref="children")
    bank_account = relationship("BankAccount", back_populates="chart_account", uselist=False)


class BankAccount(Base):
    """Reconciliation shadow of a bank-type chart account."""

    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True)
    chart_account_id = Column(
        Integer, ForeignKey("chart_of_accounts.id"), unique=True, nullable=True
    )
    account_name = Column(String, nullable=False)
    account_number = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    routing_number = Column(String, nullable=True)
    opening_balance = money_column()
    current_balance = money_column()
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    chart_account = relationship("ChartOfAccount", back_populates="bank_account")


class Customer(Base):
    """Customer model."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip = Column(String, nullable=True)
    country = Column(String, nullable=True)
    billing_address = Column(Text, nullable=True)
    billing_city = Column(String, nullable=True)
    billing_state = Column(String, nullable=True)
    billing_zip = Column(String, nullable=True)
    billing_country = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    invoices = relationship("Invoice", back_populates="customer")
    quotes = relationship("Quote", back_populates="customer")


class Vendor(Base):
    """Vendor model."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    vendor_name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)
    contact_person = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip = Column(String, nullable=True)
    country = Column(String, nullable=True)
    payment_terms = Column(String, nullable=True)
    tax_id = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    bills = relationship("Bill", back_populates="vendor")


class Part(Base):
    """Inventory part model."""

    __tablename__ = "parts"

    id = Column(Integer, primary_key=True)
    sku = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cost = money_column()
    price = money_column()
    stock_quantity = Column(Integer, default=0, nullable=False)
    min_stock_level = Column(Integer, default=0, nullable=False)
    vendor_part_numbers = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)


class Service(Base):
    """Billable service model."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    hourly_rate = money_column()
    active = Column(Boolean, default=True, nullable=False)


class Bill(Base):
    """Vendor bill model."""

    __tablename__ = "bills"

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    bill_number = Column(String, unique=True, nullable=False)
    ref_number = Column(String, nullable=True)
    bill_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    status = Column(String(16), default="unpaid", nullable=False)
    subtotal = money_column()
    tax = money_column()
    tax_name = Column(String, nullable=True)
    total = money_column()
    amount_paid = money_column()
    balance = money_column()
    terms = Column(String, nullable=True)
    memo = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    vendor = relationship("Vendor", back_populates="bills")
    items = relationship("BillItem", back_populates="bill", cascade="all, delete-orphan")
    payments = relationship("BillPayment", back_populates="bill", cascade="all, delete-orphan")


class BillItem(Base):
    """Bill line item model."""

    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    description = Column(String, nullable=False)
    quantity = Column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    rate = money_column()
    amount = money_column()

    bill = relationship("Bill", back_populates="items")
    account = relationship("ChartOfAccount")


class BillPayment(Base):
    """Payment applied to a bill."""

    __tablename__ = "bill_payments"

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    payment_date = Column(Date, nullable=False)
    amount = money_column()
    payment_method = Column(String(16), default="other", nullable=False)
    check_number = Column(String, nullable=True)
    reference = Column(String, nullable=True)
    external_reference = Column(String, nullable=True, index=True)
    memo = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    bill = relationship("Bill", back_populates="payments")
    bank_account = relationship("BankAccount")


class Invoice(Base):
    """Customer invoice model."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String, unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    status = Column(String(16), default="sent", nullable=False)
    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    subtotal = money_column()
    tax_rate = Column(Numeric(9, 4), default=Decimal("0"), nullable=False)
    tax_amount = money_column()
    tax_name = Column(String, nullable=True)
    total = money_column()
    paid_amount = money_column()
    balance = money_column()
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceItem(Base):
    """Invoice line item model."""

    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    item_type = Column(String(16), default="service", nullable=False)
    description = Column(String, nullable=False)
    quantity = Column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    unit_price = money_column()
    discount = money_column()
    total = money_column()
    sort_order = Column(Integer, default=1, nullable=False)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    """Customer payment applied to an invoice."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    payment_provider = Column(String(32), default="offline", nullable=False)
    provider_transaction_id = Column(String, nullable=True, index=True)
    amount = money_column()
    status = Column(String(16), default="completed", nullable=False)
    payment_method_type = Column(String(32), default="other", nullable=False)
    notes = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")


class Quote(Base):
    """Customer estimate model."""

    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True)
    quote_number = Column(String, unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    status = Column(String(16), default="sent", nullable=False)
    issue_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)
    subtotal = money_column()
    tax_rate = Column(Numeric(9, 4), default=Decimal("0"), nullable=False)
    tax_amount = money_column()
    tax_name = Column(String, nullable=True)
    total = money_column()
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    customer = relationship("Customer", back_populates="quotes")
    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan")


class QuoteItem(Base):
    """Estimate line item model."""

    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    item_type = Column(String(16), default="service", nullable=False)
    description = Column(String, nullable=False)
    quantity = Column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    unit_price = money_column()
    discount = money_column()
    total = money_column()
    sort_order = Column(Integer, default=1, nullable=False)

    quote = relationship("Quote", back_populates="items")


class GeneralLedgerEntry(Base):
    """Snapshot of one QuickBooks general ledger line."""

    __tablename__ = "general_ledger_entries"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    account_name = Column(String, nullable=True)
    transaction_type = Column(String, nullable=True)
    transaction_date = Column(Date, nullable=True)
    transaction_number = Column(String, nullable=True)
    name = Column(String, nullable=True)
    memo = Column(Text, nullable=True)
    split = Column(String, nullable=True)
    debit = money_column()
    credit = money_column()
    running_balance = money_column(nullable=True)
    source = Column(String(32), nullable=False, default="manual", index=True)
    external_reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)


class JournalEntry(Base):
    """Double-entry journal entry model."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    entry_number = Column(String, unique=True, nullable=False)
    entry_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    memo = Column(Text, nullable=True)
    status = Column(String(16), default="draft", nullable=False)
    created_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    lines = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.id",
    )


class JournalEntryLine(Base):
    """One debit or credit line of a journal entry."""

    __tablename__ = "journal_entry_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=False)
    debit = money_column()
    credit = money_column()
    description = Column(String, nullable=True)
    reference = Column(String, nullable=True)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("ChartOfAccount")


def _enable_sqlite_savepoints(engine) -> None:
    """Let SQLAlchemy own transaction boundaries on pysqlite.

    pysqlite's implicit BEGIN handling breaks SAVEPOINT, so the driver's
    behaviour is disabled and BEGIN is emitted explicitly. Foreign keys are
    switched on for every connection.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
