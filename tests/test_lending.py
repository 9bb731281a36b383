#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_lending
    ~~~~~~~~~~~~~~~~~~

    Borrow lifecycle: reservations, admin decisions, returns and the
    copy counter staying in step with the loans.
"""

import datetime
import pytest

from unittest.mock import patch
from sqlalchemy.exc import IntegrityError
from loanly.core.auth import Principal
from loanly.core.db import run_in_transaction
from loanly.core.items import Catalog
from loanly.core.lending import is_active_loan_conflict
from loanly.core.models import LoanStatus
from loanly.core.exceptions import (
    BookUnavailableError,
    DatabaseError,
    ExistingLoanError,
    InvalidQueryError,
    InvalidTransitionError,
    ItemInUseError,
    ItemNotFoundError,
    LoanNotFoundError,
    PatronNotFoundError,
    PermissionDeniedError,
)
from tests.conftest import NOW


def assert_consistent(lending, item_id):
    report = lending.audit(item_id)
    assert report["consistent"], report


def test_request_borrow_reserves_a_copy(lending, alice, make_item, available):
    item_id = make_item(copies=2)
    loan = lending.request_borrow(alice, item_id, 7)

    assert loan.status == LoanStatus.PENDING
    assert loan.patron_id == alice.patron_id
    assert loan.due_at - loan.requested_at == datetime.timedelta(days=7)
    assert loan.requested_at == NOW
    assert available(item_id) == 1
    assert_consistent(lending, item_id)


def test_full_lifecycle_scenario(lending, admin, alice, bob, make_item, available):
    item_id = make_item(copies=2)

    first = lending.request_borrow(alice, item_id, 7)
    assert available(item_id) == 1

    with pytest.raises(ExistingLoanError):
        lending.request_borrow(alice, item_id, 7)
    assert available(item_id) == 1

    rejected = lending.reject(admin, first.id)
    assert rejected.status == LoanStatus.REJECTED
    assert available(item_id) == 2

    second = lending.request_borrow(bob, item_id, 3)
    assert available(item_id) == 1

    approved = lending.approve(admin, second.id)
    assert approved.status == LoanStatus.APPROVED
    assert available(item_id) == 1

    message = lending.return_item(bob, second.id)
    assert message == f"Item with loan id = {second.id} returned successfully"
    assert lending.find_one(second.id).status == LoanStatus.RETURNED
    assert available(item_id) == 2
    assert_consistent(lending, item_id)


def test_out_of_stock_regardless_of_history(lending, admin, alice, bob, make_item):
    item_id = make_item(copies=1)
    loan = lending.request_borrow(alice, item_id, 1)
    lending.approve(admin, loan.id)

    with pytest.raises(BookUnavailableError):
        lending.request_borrow(bob, item_id, 1)

    empty = make_item(copies=0, title="Out of print")
    with pytest.raises(BookUnavailableError):
        lending.request_borrow(alice, empty, 1)


def test_borrow_again_after_return(lending, admin, alice, make_item, available):
    item_id = make_item(copies=1)
    loan = lending.request_borrow(alice, item_id, 7)
    lending.approve(admin, loan.id)
    lending.return_item(alice, loan.id)

    again = lending.request_borrow(alice, item_id, 7)
    assert again.id != loan.id
    assert available(item_id) == 0


def test_conflict_checked_before_stock(lending, alice, make_item):
    item_id = make_item(copies=1)
    lending.request_borrow(alice, item_id, 7)
    with pytest.raises(ExistingLoanError):
        lending.request_borrow(alice, item_id, 7)


def test_unknown_item_or_patron(lending, alice, make_item):
    with pytest.raises(ItemNotFoundError):
        lending.request_borrow(alice, 999, 7)

    item_id = make_item()
    ghost = Principal(patron_id=999)
    with pytest.raises(PatronNotFoundError):
        lending.request_borrow(ghost, item_id, 7)


@pytest.mark.parametrize("days", [0, -3, True, 7.5])
def test_requested_days_must_be_positive_integer(lending, alice, make_item, available, days):
    item_id = make_item()
    with pytest.raises(InvalidQueryError):
        lending.request_borrow(alice, item_id, days)
    assert available(item_id) == 1


def test_approve_and_reject_require_pending(lending, admin, alice, make_item):
    item_id = make_item(copies=2)
    loan = lending.request_borrow(alice, item_id, 7)
    lending.approve(admin, loan.id)

    with pytest.raises(InvalidTransitionError):
        lending.approve(admin, loan.id)
    with pytest.raises(InvalidTransitionError):
        lending.reject(admin, loan.id)


def test_return_requires_approved(lending, alice, make_item, available):
    item_id = make_item()
    loan = lending.request_borrow(alice, item_id, 7)
    with pytest.raises(InvalidTransitionError):
        lending.return_item(alice, loan.id)
    assert available(item_id) == 0


@pytest.mark.parametrize("terminal", ["reject", "return"])
def test_terminal_states_refuse_every_transition(lending, admin, alice, make_item, available, terminal):
    item_id = make_item()
    loan = lending.request_borrow(alice, item_id, 7)
    if terminal == "reject":
        lending.reject(admin, loan.id)
    else:
        lending.approve(admin, loan.id)
        lending.return_item(alice, loan.id)

    for attempt in (
        lambda: lending.approve(admin, loan.id),
        lambda: lending.reject(admin, loan.id),
        lambda: lending.return_item(alice, loan.id),
    ):
        with pytest.raises(InvalidTransitionError):
            attempt()
    assert available(item_id) == 1
    assert_consistent(lending, item_id)


def test_return_by_other_borrower_is_not_found(lending, admin, alice, bob, make_item, available):
    item_id = make_item()
    loan = lending.request_borrow(alice, item_id, 7)
    lending.approve(admin, loan.id)

    with pytest.raises(LoanNotFoundError):
        lending.return_item(bob, loan.id)
    assert lending.find_one(loan.id).status == LoanStatus.APPROVED
    assert available(item_id) == 0


def test_only_admins_decide(lending, alice, make_item):
    item_id = make_item()
    loan = lending.request_borrow(alice, item_id, 7)
    with pytest.raises(PermissionDeniedError):
        lending.approve(alice, loan.id)
    with pytest.raises(PermissionDeniedError):
        lending.reject(alice, loan.id)
    assert lending.find_one(loan.id).status == LoanStatus.PENDING


def test_admins_do_not_borrow(lending, admin, alice, make_item, available):
    item_id = make_item()
    with pytest.raises(PermissionDeniedError):
        lending.request_borrow(admin, item_id, 7)
    assert available(item_id) == 1

    loan = lending.request_borrow(alice, item_id, 7)
    lending.approve(admin, loan.id)
    with pytest.raises(PermissionDeniedError):
        lending.return_item(admin, loan.id)
    assert lending.find_one(loan.id).status == LoanStatus.APPROVED
    assert available(item_id) == 0


def test_missing_loan(lending, admin, alice):
    with pytest.raises(LoanNotFoundError):
        lending.find_one(42)
    with pytest.raises(LoanNotFoundError):
        lending.approve(admin, 42)
    with pytest.raises(LoanNotFoundError):
        lending.return_item(alice, 42)


def test_list_loans_page_metadata(lending, make_item, make_patron):
    item_id = make_item(copies=30)
    other = make_item(copies=30, title="Emma")
    for n in range(23):
        patron = make_patron(f"Reader {n}", f"reader{n}@example.com")
        lending.request_borrow(patron, item_id, 7)
        lending.request_borrow(patron, other, 7)

    page = lending.list_loans(status=LoanStatus.PENDING, item_id=item_id, page=1, page_size=10)
    assert page.total == 23
    assert page.total_pages == 3
    assert page.current_page == 1
    assert page.page_size == 10
    assert len(page.data) == 10
    assert all(loan.item_id == item_id for loan in page.data)

    last = lending.list_loans(item_id=item_id, page=3, page_size=10)
    assert len(last.data) == 3


def test_list_loans_empty(lending):
    page = lending.list_loans(status=LoanStatus.APPROVED)
    assert page.total == 0
    assert page.total_pages == 0
    assert page.data == []


def test_list_loans_rejects_oversized_page(lending):
    with pytest.raises(InvalidQueryError):
        lending.list_loans(page_size=10_000)


def test_has_active_loans_and_item_removal(lending, Session, admin, alice, make_item):
    item_id = make_item()
    assert not lending.has_active_loans(item_id)

    loan = lending.request_borrow(alice, item_id, 7)
    assert lending.has_active_loans(item_id)
    with pytest.raises(ItemInUseError):
        run_in_transaction(lambda db: Catalog.remove(db, item_id, lending), Session)

    lending.reject(admin, loan.id)
    assert not lending.has_active_loans(item_id)


def test_remove_unused_item(lending, Session, make_item):
    item_id = make_item()
    message = run_in_transaction(lambda db: Catalog.remove(db, item_id, lending), Session)
    assert message == f"Item with id = {item_id} deleted successfully"
    with pytest.raises(ItemNotFoundError):
        lending.audit(item_id)


def test_audit_detects_drift(lending, Session, alice, make_item):
    item_id = make_item(copies=2)
    lending.request_borrow(alice, item_id, 7)

    def tamper(db):
        Catalog.find(db, item_id).available_copies = 2

    run_in_transaction(tamper, Session)
    report = lending.audit(item_id)
    assert report == {
        "item_id": item_id,
        "total_copies": 2,
        "available_copies": 2,
        "active_loans": 1,
        "consistent": False,
    }


def integrity_error(message):
    return IntegrityError("INSERT INTO loans ...", {}, Exception(message))


@pytest.mark.parametrize("message,conflict", [
    ("UNIQUE constraint failed: loans.patron_id, loans.item_id", True),
    ('duplicate key value violates unique constraint "uq_loans_active_patron_item"\n'
     "DETAIL:  Key (patron_id, item_id)=(1, 2) already exists.", True),
    ('insert or update on table "loans" violates foreign key constraint "loans_patron_id_fkey"\n'
     'DETAIL:  Key (patron_id)=(9) is not present in table "patrons".', False),
    ("FOREIGN KEY constraint failed", False),
])
def test_active_loan_conflict_detection(message, conflict):
    assert is_active_loan_conflict(integrity_error(message)) is conflict


def test_foreign_key_failure_is_not_reported_as_existing_loan(lending, alice, make_item, available):
    item_id = make_item()
    fk_error = integrity_error(
        'insert or update on table "loans" violates foreign key constraint '
        '"loans_patron_id_fkey"'
    )
    with patch("loanly.core.lending.LoanStore.create", side_effect=fk_error):
        with pytest.raises(DatabaseError):
            lending.request_borrow(alice, item_id, 7)
    assert available(item_id) == 1


def test_loan_read_back_keeps_utc(lending, alice, make_item):
    item_id = make_item()
    loan = lending.request_borrow(alice, item_id, 7)
    found = lending.find_one(loan.id)
    assert found.requested_at == NOW
    assert found.due_at == NOW + datetime.timedelta(days=7)
    assert found.due_at.utcoffset() == datetime.timedelta(0)
