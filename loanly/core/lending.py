#!/usr/bin/env python

"""
    Borrow lifecycle engine for Loanly.

    Coordinates the loan record store and the inventory ledger. A copy is
    reserved (counter decremented) when the loan is requested, not when it
    is approved, and released again on reject or return. Each operation
    is a single transaction, so a loan's status and its item's counter
    are only ever observed together.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
import math
from typing import Optional
from sqlalchemy.exc import IntegrityError
from loanly.configs import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MAX_LOAN_DAYS
from loanly.core.db import session as default_session, run_in_transaction
from loanly.core.auth import Principal
from loanly.core.items import Catalog
from loanly.core.ledger import Ledger
from loanly.core.models import Loan, LoanStatus
from loanly.core.patrons import Patrons
from loanly.core.store import LoanStore
from loanly.core.transitions import Action, next_status, releases_copy
from loanly.core.exceptions import (
    BookUnavailableError,
    ExistingLoanError,
    InvalidQueryError,
    InvalidStateError,
    InvalidTransitionError,
    LoanNotFoundError,
    PermissionDeniedError,
)
from loanly.schemas.loan import LoanOut, Page

logger = logging.getLogger(__name__)

# PostgreSQL names the violated index; SQLite lists its columns instead
ACTIVE_LOAN_CONFLICTS = ("uq_loans_active_patron_item", "loans.patron_id, loans.item_id")


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


def is_active_loan_conflict(error: IntegrityError) -> bool:
    """True when `error` is the one-active-loan-per-(patron, item) violation."""
    message = str(error.orig)
    return any(marker in message for marker in ACTIVE_LOAN_CONFLICTS)


class Lending:

    def __init__(self, session=None, clock=None):
        self.session = session if session is not None else default_session
        self.clock = clock or utcnow

    def _run(self, work):
        return run_in_transaction(work, session_factory=self.session)

    @staticmethod
    def _require_admin(principal: Principal, action: Action):
        if not principal.is_admin:
            raise PermissionDeniedError(f"Only administrators may {action.value} loans.")

    @staticmethod
    def _require_borrower(principal: Principal):
        if principal.is_admin:
            raise PermissionDeniedError("Administrators cannot borrow or return items.")

    def request_borrow(self, principal: Principal, item_id: int, requested_days: int) -> Loan:
        """Reserves a copy of `item_id` for the principal and opens a PENDING loan.

        Raises:
            PatronNotFoundError / ItemNotFoundError: unknown borrower or item.
            PermissionDeniedError: the principal is an administrator.
            ExistingLoanError: the borrower already has a PENDING or APPROVED loan for the item.
            BookUnavailableError: no copies left to reserve.
        """
        self._require_borrower(principal)
        if isinstance(requested_days, bool) or not isinstance(requested_days, int) \
                or not 1 <= requested_days <= MAX_LOAN_DAYS:
            raise InvalidQueryError(
                f"requested_days must be an integer between 1 and {MAX_LOAN_DAYS}."
            )
        patron_id = principal.patron_id

        def work(db):
            Patrons.find(db, patron_id)
            Catalog.find(db, item_id)
            if LoanStore.find_one_by(db, patron_id=patron_id, item_id=item_id,
                                     status=LoanStatus.active()):
                raise ExistingLoanError(
                    "User already has a pending or approved borrow request for this book"
                )
            if Ledger.available(db, item_id) == 0:
                raise BookUnavailableError("Book out of stock")
            try:
                Ledger.apply_delta(db, item_id, -1)
            except InvalidStateError:
                # Another request took the last copy after our read
                raise BookUnavailableError("Book out of stock") from None

            requested_at = self.clock()
            try:
                return LoanStore.create(
                    db, item_id=item_id, patron_id=patron_id,
                    requested_at=requested_at,
                    due_at=requested_at + datetime.timedelta(days=requested_days),
                )
            except IntegrityError as e:
                if not is_active_loan_conflict(e):
                    raise
                raise ExistingLoanError(
                    "User already has a pending or approved borrow request for this book"
                ) from None

        loan = self._run(work)
        logger.info("Patron %s requested item %s for %s days (loan %s)",
                    patron_id, item_id, requested_days, loan.id)
        return loan

    def _transition(self, loan_id: int, action: Action, owner_id: Optional[int] = None) -> Loan:
        def work(db):
            loan = LoanStore.find_by_id(db, loan_id)
            if loan is None:
                raise LoanNotFoundError(f"Borrow with id = {loan_id} not found")
            if owner_id is not None and loan.patron_id != owner_id:
                raise LoanNotFoundError(f"Borrow not found for user with id = {owner_id}")
            current = loan.status
            new_status = next_status(current, action)
            # The write re-checks the status, so only one racing transition wins
            if not LoanStore.update_status(db, loan_id, new_status, expected=current):
                raise InvalidTransitionError(
                    f"Borrow request {loan_id} is no longer {current.name}."
                )
            if releases_copy(action):
                Ledger.apply_delta(db, loan.item_id, +1)
            return LoanStore.find_by_id(db, loan_id)

        loan = self._run(work)
        logger.info("Loan %s %s -> %s", loan_id, action.value, loan.status.name)
        return loan

    def approve(self, principal: Principal, loan_id: int) -> Loan:
        self._require_admin(principal, Action.APPROVE)
        return self._transition(loan_id, Action.APPROVE)

    def reject(self, principal: Principal, loan_id: int) -> Loan:
        self._require_admin(principal, Action.REJECT)
        return self._transition(loan_id, Action.REJECT)

    def return_item(self, principal: Principal, loan_id: int) -> str:
        """Returns an APPROVED loan owned by the principal and releases its copy.

        A loan owned by someone else is reported as not found.
        """
        self._require_borrower(principal)
        self._transition(loan_id, Action.RETURN, owner_id=principal.patron_id)
        return f"Item with loan id = {loan_id} returned successfully"

    def find_one(self, loan_id: int) -> Loan:
        def work(db):
            if loan := LoanStore.find_by_id(db, loan_id):
                return loan
            raise LoanNotFoundError(f"Borrow with id = {loan_id} not found")
        return self._run(work)

    def list_loans(self, status: Optional[LoanStatus] = None, patron_id: Optional[int] = None,
                   item_id: Optional[int] = None, page: int = 1,
                   page_size: int = DEFAULT_PAGE_SIZE, sort_by: str = "id",
                   sort_direction: str = "ASC") -> Page:
        if page_size > MAX_PAGE_SIZE:
            raise InvalidQueryError(f"page_size must not exceed {MAX_PAGE_SIZE}.")
        filters = {"status": status, "patron_id": patron_id, "item_id": item_id}
        rows, total = self._run(lambda db: LoanStore.page(
            db, filters, page=page, page_size=page_size,
            sort_by=sort_by, sort_direction=sort_direction,
        ))
        return Page(
            total=total,
            current_page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
            data=[LoanOut.model_validate(row) for row in rows],
        )

    def has_active_loans(self, item_id: int, db=None) -> bool:
        """True while any PENDING or APPROVED loan references the item."""
        if db is not None:
            return LoanStore.exists_active(db, item_id)
        return self._run(lambda db: LoanStore.exists_active(db, item_id))

    def audit(self, item_id: int) -> dict:
        """Compares the cached counter with the live loan population."""
        def work(db):
            item = Catalog.find(db, item_id)
            active = LoanStore.count_active(db, item_id)
            return {
                "item_id": item.id,
                "total_copies": item.total_copies,
                "available_copies": item.available_copies,
                "active_loans": active,
                "consistent": item.available_copies + active == item.total_copies,
            }

        report = self._run(work)
        if not report["consistent"]:
            logger.error("Inventory drift on item %s: %s", item_id, report)
        return report
