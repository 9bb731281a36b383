#!/usr/bin/env python

"""
    Loan record store for Loanly.

    Storage and query surface for Loan rows. It has no knowledge of the
    state machine: any status handed to it is written as-is.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from sqlalchemy import select, update, func, asc, desc, exists
from loanly.core.models import Loan, LoanStatus
from loanly.core.exceptions import InvalidQueryError


class LoanStore:

    SORTABLE = {
        "id": Loan.id,
        "status": Loan.status,
        "item_id": Loan.item_id,
        "patron_id": Loan.patron_id,
        "requested_at": Loan.requested_at,
        "due_at": Loan.due_at,
    }
    FILTERABLE = ("status", "patron_id", "item_id")

    @classmethod
    def create(cls, db, item_id, patron_id, requested_at, due_at, status=LoanStatus.PENDING):
        loan = Loan(
            item_id=item_id,
            patron_id=patron_id,
            status=status,
            requested_at=requested_at,
            due_at=due_at,
        )
        db.add(loan)
        db.flush()
        return loan

    @classmethod
    def find_by_id(cls, db, loan_id):
        return db.get(Loan, loan_id, populate_existing=True)

    @classmethod
    def _criteria(cls, **criteria):
        clauses = []
        for field, value in criteria.items():
            if value is None:
                continue
            column = getattr(Loan, field)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(value))
            else:
                clauses.append(column == value)
        return clauses

    @classmethod
    def find_one_by(cls, db, **criteria):
        """First loan matching every criterion; a collection value means IN."""
        return db.execute(
            select(Loan).where(*cls._criteria(**criteria)).order_by(Loan.id).limit(1)
        ).scalar_one_or_none()

    @classmethod
    def update_status(cls, db, loan_id, new_status, expected=None):
        """Writes `new_status`, only if the row is still in `expected` when given.

        Returns the number of rows changed (0 or 1).
        """
        stmt = update(Loan).where(Loan.id == loan_id)
        if expected is not None:
            stmt = stmt.where(Loan.status == expected)
        result = db.execute(
            stmt.values(status=new_status, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @classmethod
    def count_active(cls, db, item_id):
        return db.execute(
            select(func.count(Loan.id)).where(
                Loan.item_id == item_id, Loan.status.in_(LoanStatus.active())
            )
        ).scalar_one()

    @classmethod
    def exists_active(cls, db, item_id):
        return cls.find_one_by(db, item_id=item_id, status=LoanStatus.active()) is not None

    @classmethod
    def exists_any(cls, db, item_id):
        """True if the item has ever been lent, whatever the loan status."""
        return db.execute(select(exists().where(Loan.item_id == item_id))).scalar()

    @classmethod
    def page(cls, db, filters=None, page=1, page_size=10, sort_by="id", sort_direction="ASC"):
        """Returns (rows, total) for one page of loans matching all filters."""
        if page < 1 or page_size < 1:
            raise InvalidQueryError("page and page_size must be positive integers.")
        if sort_by not in cls.SORTABLE:
            raise InvalidQueryError(
                f"Cannot sort by '{sort_by}'; expected one of {', '.join(cls.SORTABLE)}."
            )
        direction = (sort_direction or "ASC").upper()
        if direction not in ("ASC", "DESC"):
            raise InvalidQueryError(f"Invalid sort direction '{sort_direction}'.")

        filters = {k: v for k, v in (filters or {}).items() if k in cls.FILTERABLE}
        where = cls._criteria(**filters)
        order = asc if direction == "ASC" else desc

        total = db.execute(select(func.count(Loan.id)).where(*where)).scalar_one()
        rows = db.execute(
            select(Loan)
            .where(*where)
            .order_by(order(cls.SORTABLE[sort_by]), order(Loan.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return rows, total
