#!/usr/bin/env python

"""
    Inventory ledger for Loanly.

    Owns Item.available_copies. Deltas are applied with one conditional
    UPDATE so concurrent writers on the same item serialize on the row
    and the counter can never leave [0, total_copies].

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from sqlalchemy import update, select
from loanly.core.models import Item
from loanly.core.exceptions import ItemNotFoundError, InvalidStateError

logger = logging.getLogger(__name__)


class Ledger:

    @classmethod
    def available(cls, db, item_id: int) -> int:
        value = db.execute(
            select(Item.available_copies).where(Item.id == item_id)
        ).scalar_one_or_none()
        if value is None:
            raise ItemNotFoundError(f"Item with id = {item_id} not found")
        return value

    @classmethod
    def apply_delta(cls, db, item_id: int, delta: int) -> int:
        """Adds `delta` to the item's available copies and returns the new value.

        Raises:
            ItemNotFoundError: the item does not exist.
            InvalidStateError: the result would be negative or exceed total_copies.
        """
        result = db.execute(
            update(Item)
            .where(
                Item.id == item_id,
                Item.available_copies + delta >= 0,
                Item.available_copies + delta <= Item.total_copies,
            )
            .values(available_copies=Item.available_copies + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = cls.available(db, item_id)
            raise InvalidStateError(
                f"Cannot apply {delta:+d} to item {item_id} with {current} available copies."
            )
        value = cls.available(db, item_id)
        logger.debug("Item %s available copies %+d -> %s", item_id, delta, value)
        return value

    @classmethod
    def resize(cls, db, item_id: int, total_copies: int) -> int:
        """Sets the item's total copies, moving available copies by the same amount.

        Copies on loan are untouched, so the item must keep at least as many
        copies as it has PENDING or APPROVED loans. Returns the new available
        count.

        Raises:
            ItemNotFoundError: the item does not exist.
            InvalidStateError: fewer copies than are currently on loan.
        """
        if total_copies < 0:
            raise InvalidStateError("total_copies must not be negative.")
        # SET expressions read the old row, so the shift is taken from the live total
        shift = total_copies - Item.total_copies
        result = db.execute(
            update(Item)
            .where(Item.id == item_id, Item.available_copies + shift >= 0)
            .values(total_copies=total_copies, available_copies=Item.available_copies + shift)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = cls.available(db, item_id)
            raise InvalidStateError(
                f"Cannot resize item {item_id} to {total_copies} copies with "
                f"{current} available."
            )
        value = cls.available(db, item_id)
        logger.debug("Item %s resized to %s copies, %s available", item_id, total_copies, value)
        return value
