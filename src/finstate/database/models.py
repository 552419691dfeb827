"""SQLAlchemy models for finstate database."""

from datetime import datetime, UTC
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
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class TrialBalance(Base):
    """Trial balance aggregate root."""

    __tablename__ = "trial_balances"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    has_adjustments = Column(Boolean, default=False, nullable=False)
    file_name = Column(String, nullable=True)
    period_end = Column(Date, nullable=True)
    ifrs_standard = Column(String, nullable=False, default="full")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    accounts = relationship(
        "LedgerAccount",
        back_populates="trial_balance",
        cascade="all, delete-orphan",
        order_by="LedgerAccount.position",
    )
    mappings = relationship(
        "AccountMapping", back_populates="trial_balance", cascade="all, delete-orphan"
    )
    edit_records = relationship(
        "EditRecord",
        back_populates="trial_balance",
        cascade="all, delete-orphan",
        order_by="EditRecord.sequence",
    )


class LedgerAccount(Base):
    """Trial balance account with original and adjustment amounts."""

    __tablename__ = "ledger_accounts"

    id = Column(Integer, primary_key=True)
    trial_balance_id = Column(Integer, ForeignKey("trial_balances.id"), nullable=False)
    position = Column(Integer, nullable=False)
    account_id = Column(String, nullable=False)
    account_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    original_debit = Column(Numeric(18, 2), nullable=False, default=0)
    original_credit = Column(Numeric(18, 2), nullable=False, default=0)
    adjustment_debit = Column(Numeric(18, 2), nullable=False, default=0)
    adjustment_credit = Column(Numeric(18, 2), nullable=False, default=0)
    is_edited = Column(Boolean, default=False, nullable=False)
    last_modified = Column(DateTime, nullable=True)
    modified_by = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("trial_balance_id", "account_id", name="uq_trial_balance_account"),
    )

    # Relationships
    trial_balance = relationship("TrialBalance", back_populates="accounts")


class AccountMapping(Base):
    """Statement line item an account is mapped to."""

    __tablename__ = "account_mappings"

    id = Column(Integer, primary_key=True)
    trial_balance_id = Column(Integer, ForeignKey("trial_balances.id"), nullable=False)
    account_id = Column(String, nullable=False)
    statement = Column(String, nullable=False)
    line_item = Column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("trial_balance_id", "account_id", name="uq_trial_balance_mapping"),
    )

    # Relationships
    trial_balance = relationship("TrialBalance", back_populates="mappings")


class EditRecord(Base):
    """Append-only audit record. Field changes are stored as JSON text."""

    __tablename__ = "edit_records"

    id = Column(String, primary_key=True)
    trial_balance_id = Column(Integer, ForeignKey("trial_balances.id"), nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    user_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    version = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    account_id = Column(String, nullable=True)
    changes = Column(Text, nullable=False, default="[]")

    # Relationships
    trial_balance = relationship("TrialBalance", back_populates="edit_records")


class ClassificationRule(Base):
    """Custom classification rule. List fields are stored as JSON text."""

    __tablename__ = "classification_rules"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    statement = Column(String, nullable=False)
    line_item = Column(String, nullable=False)
    keywords = Column(Text, nullable=False, default="[]")
    patterns = Column(Text, nullable=False, default="[]")
    account_codes = Column(Text, nullable=False, default="[]")
    priority = Column(Integer, nullable=False, default=50)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
