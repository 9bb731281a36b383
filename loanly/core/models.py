#!/usr/bin/env python 

"""
    Models for Loanly,
    including the patrons, items and loans tables.

    Item.available_copies is maintained incrementally by the ledger and
    must equal total_copies minus the item's PENDING/APPROVED loans.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import enum
from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, ForeignKey,
    CheckConstraint, Index, Enum as SQLAlchemyEnum, text
)
from sqlalchemy.types import TypeDecorator
from sqlalchemy.sql import func
from loanly.core.db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
Identifier = BigInteger().with_variant(Integer, "sqlite")


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend.

    SQLite has no timezone type and hands back naive values, so results
    are tagged as UTC on the way out.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires a timezone-aware datetime")
        return value.astimezone(datetime.timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class Role(enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class LoanStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"

    @classmethod
    def active(cls):
        """Statuses that hold a reserved copy."""
        return (cls.PENDING, cls.APPROVED)

    @property
    def is_terminal(self):
        return self in (LoanStatus.REJECTED, LoanStatus.RETURNED)


ACTIVE_STATUS_SQL = "status IN ('PENDING', 'APPROVED')"


class Patron(Base):
    __tablename__ = 'patrons'

    id = Column(Identifier, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(SQLAlchemyEnum(Role), default=Role.USER, nullable=False)
    password_hash = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, default=func.now())


class Item(Base):
    __tablename__ = 'items'

    id = Column(Identifier, primary_key=True)
    title = Column(String(255), nullable=False)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('available_copies >= 0', name='ck_items_available_nonnegative'),
        CheckConstraint('available_copies <= total_copies', name='ck_items_available_bounded'),
    )


class Loan(Base):
    __tablename__ = 'loans'

    id = Column(Identifier, primary_key=True)
    item_id = Column(Identifier, ForeignKey('items.id'), nullable=False, index=True)
    patron_id = Column(Identifier, ForeignKey('patrons.id'), nullable=False, index=True)
    status = Column(SQLAlchemyEnum(LoanStatus), default=LoanStatus.PENDING, nullable=False)
    requested_at = Column(UTCDateTime, nullable=False)
    due_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    # At most one PENDING/APPROVED loan per (patron, item)
    __table_args__ = (
        Index(
            'uq_loans_active_patron_item', 'patron_id', 'item_id',
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    def __repr__(self):
        return f"<Loan id={self.id} item={self.item_id} patron={self.patron_id} status={self.status.name}>"
