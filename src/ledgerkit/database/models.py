"""SQLAlchemy models for the ledgerkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(14, 2)


class ChartAccount(Base):
    """Chart of accounts model. Enum fields are stored as their values."""

    __tablename__ = "chart_accounts"

    id = Column(String, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    parent_id = Column(String, ForeignKey("chart_accounts.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(String, nullable=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("ChartAccount", remote_side=[id], backref="children")


class BankAccount(Base):
    """Bank or credit card account model."""

    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    bank_id = Column(String, nullable=False, default="")
    account_id_masked = Column(String, nullable=False)
    account_id_hash = Column(String, unique=True, nullable=False)
    account_type = Column(String, nullable=False)
    currency = Column(String, nullable=False, default="USD")
    # Plain column: chart_accounts already references bank_accounts
    chart_account_id = Column(String, nullable=True)
    opening_balance = Column(MONEY, nullable=False, default=0)
    opening_balance_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transactions = relationship(
        "BankTransaction", back_populates="account", cascade="all, delete-orphan"
    )
    reconciliations = relationship(
        "Reconciliation", back_populates="account", cascade="all, delete-orphan"
    )


class BankTransaction(Base):
    """Imported bank transaction model."""

    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False)
    fit_id = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    date_posted = Column(Date, nullable=False)
    name = Column(String, nullable=False)
    memo = Column(String, nullable=True)
    check_num = Column(String, nullable=True)
    ref_num = Column(String, nullable=True)
    transaction_type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    chart_account_id = Column(String, ForeignKey("chart_accounts.id"), nullable=True)
    subcategory = Column(String, nullable=True)
    revenue_source_id = Column(Integer, nullable=True)
    flow_type = Column(String, nullable=False)
    is_ignored = Column(Boolean, default=False, nullable=False)
    is_reconciled = Column(Boolean, default=False, nullable=False)
    import_batch_id = Column(String, nullable=False, default="")
    journal_entry_id = Column(String, ForeignKey("journal_entries.id"), nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # A fit id is unique within its bank account
    __table_args__ = (UniqueConstraint("account_id", "fit_id", name="uq_account_fit_id"),)

    # Relationships
    account = relationship("BankAccount", back_populates="transactions")


class JournalEntry(Base):
    """Journal entry model."""

    __tablename__ = "journal_entries"

    id = Column(String, primary_key=True)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    bank_transaction_id = Column(Integer, nullable=True)
    is_reconciled = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    lines = relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.position",
    )


class JournalLine(Base):
    """Journal line model."""

    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    entry_id = Column(String, ForeignKey("journal_entries.id"), nullable=False)
    position = Column(Integer, nullable=False)
    account_id = Column(String, ForeignKey("chart_accounts.id"), nullable=False)
    amount = Column(MONEY, nullable=False)
    side = Column(String, nullable=False)

    # Relationships
    entry = relationship("JournalEntry", back_populates="lines")


class MappingRule(Base):
    """Categorization rule model."""

    __tablename__ = "mapping_rules"

    id = Column(Integer, primary_key=True)
    pattern = Column(String, nullable=False)
    match_field = Column(String, nullable=False)
    match_type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    chart_account_id = Column(String, ForeignKey("chart_accounts.id"), nullable=True)
    subcategory = Column(String, nullable=True)
    revenue_source_id = Column(Integer, nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class Reconciliation(Base):
    """Reconciliation audit record model."""

    __tablename__ = "reconciliations"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False)
    reconciled_date = Column(Date, nullable=False)
    expected_balance = Column(MONEY, nullable=False)
    actual_balance = Column(MONEY, nullable=False)
    adjustment_amount = Column(MONEY, nullable=False)
    notes = Column(String, nullable=False, default="")
    adjustment_fit_id = Column(String, nullable=True)
    adjustment_transaction_id = Column(
        Integer, ForeignKey("bank_transactions.id"), nullable=True
    )
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    account = relationship("BankAccount", back_populates="reconciliations")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
