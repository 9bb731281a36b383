#!/usr/bin/env python

"""
    Item catalog collaborator.

    Identity, titles and copy counts of lendable items. The available
    counter itself belongs to the ledger; the catalog only ever moves it
    together with total_copies.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from typing import Optional
from sqlalchemy import select, update, func, asc, desc
from loanly.core.ledger import Ledger
from loanly.core.models import Item
from loanly.core.store import LoanStore
from loanly.core.exceptions import (
    ItemNotFoundError,
    ItemInUseError,
    InvalidQueryError,
    InvalidStateError,
)

logger = logging.getLogger(__name__)


class Catalog:

    SORTABLE = {
        "id": Item.id,
        "title": Item.title,
        "total_copies": Item.total_copies,
        "available_copies": Item.available_copies,
        "created_at": Item.created_at,
    }

    @classmethod
    def add(cls, db, title: str, copies: int = 1) -> Item:
        if copies < 0:
            raise InvalidQueryError("copies must not be negative.")
        item = Item(title=title, total_copies=copies, available_copies=copies)
        db.add(item)
        db.flush()
        logger.info("Added item %s '%s' with %s copies", item.id, title, copies)
        return item

    @classmethod
    def find(cls, db, item_id: int) -> Item:
        if item := db.get(Item, item_id, populate_existing=True):
            return item
        raise ItemNotFoundError(f"Item with id = {item_id} not found")

    @classmethod
    def list(cls, db, page=1, page_size=10, sort_by="id", sort_direction="ASC"):
        """Returns (rows, total) for one page of the catalog."""
        if page < 1 or page_size < 1:
            raise InvalidQueryError("page and page_size must be positive integers.")
        if sort_by not in cls.SORTABLE:
            raise InvalidQueryError(
                f"Cannot sort by '{sort_by}'; expected one of {', '.join(cls.SORTABLE)}."
            )
        direction = (sort_direction or "ASC").upper()
        if direction not in ("ASC", "DESC"):
            raise InvalidQueryError(f"Invalid sort direction '{sort_direction}'.")
        order = asc if direction == "ASC" else desc

        total = db.execute(select(func.count(Item.id))).scalar_one()
        rows = db.execute(
            select(Item)
            .order_by(order(cls.SORTABLE[sort_by]), order(Item.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return rows, total

    @classmethod
    def update(cls, db, item_id: int, title: Optional[str] = None,
               total_copies: Optional[int] = None) -> Item:
        """Renames and/or resizes an item.

        Resizing shifts available_copies by the same amount as total_copies,
        so copies already on loan stay accounted for. available_copies is
        never written directly.

        Raises:
            ItemNotFoundError: the item does not exist.
            ItemInUseError: total_copies is below the number of copies on loan.
        """
        if total_copies is not None and total_copies < 0:
            raise InvalidQueryError("total_copies must not be negative.")
        cls.find(db, item_id)
        if title is not None:
            db.execute(
                update(Item).where(Item.id == item_id).values(title=title)
                .execution_options(synchronize_session=False)
            )
        if total_copies is not None:
            try:
                Ledger.resize(db, item_id, total_copies)
            except InvalidStateError:
                on_loan = LoanStore.count_active(db, item_id)
                raise ItemInUseError(
                    f"Cannot reduce item {item_id} to {total_copies} copies "
                    f"while {on_loan} are on loan"
                ) from None
        item = cls.find(db, item_id)
        logger.info("Updated item %s: title=%r total_copies=%s",
                    item_id, item.title, item.total_copies)
        return item

    @classmethod
    def remove(cls, db, item_id: int, lending) -> str:
        """Deletes an item unless a PENDING or APPROVED loan still references it."""
        item = cls.find(db, item_id)
        if lending.has_active_loans(item_id, db=db):
            raise ItemInUseError(
                "Cannot delete item with pending or approved borrow requests"
            )
        if LoanStore.exists_any(db, item_id):
            # History is retained, so an item with past loans is never dropped
            raise ItemInUseError("Cannot delete item with loan history")
        db.delete(item)
        logger.info("Deleted item %s", item_id)
        return f"Item with id = {item_id} deleted successfully"
