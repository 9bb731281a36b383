#!/usr/bin/env python

"""
    API routes for Loanly,
    sign-up and login, the item catalog, borrow requests, admin
    decisions, returns and loan listings.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import math
from typing import Optional
from fastapi import (
    APIRouter,
    Request,
    HTTPException,
    Depends,
    Query,
    status,
    Cookie
)
from loanly.configs import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from loanly.core import auth
from loanly.core.auth import Principal
from loanly.core.db import run_in_transaction
from loanly.core.items import Catalog
from loanly.core.lending import Lending
from loanly.core.models import LoanStatus
from loanly.core.patrons import Patrons
from loanly.schemas.auth import SignupRequest, LoginRequest, TokenOut
from loanly.schemas.item import ItemAudit, ItemCreate, ItemUpdate, ItemOut, ItemPage
from loanly.schemas.loan import BorrowRequest, BorrowResponse, LoanOut, Page, Message

router = APIRouter()

lending = Lending()


def get_lending() -> Lending:
    return lending


def current_principal(request: Request, session: Optional[str] = Cookie(None)) -> Principal:
    """Resolves the caller from a Bearer token, falling back to the session cookie."""
    token = session
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ")[1]
    if principal := auth.verify_token(token):
        return principal
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def admin_principal(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return principal


def borrower_principal(principal: Principal = Depends(current_principal)) -> Principal:
    """Borrowing and returning are for patrons; administrators only decide."""
    if principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Borrower role required")
    return principal


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/auth/signup", status_code=status.HTTP_201_CREATED, response_model=TokenOut)
def signup(body: SignupRequest, lending: Lending = Depends(get_lending)):
    if body.password != body.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Passwords do not match")
    patron = run_in_transaction(
        lambda db: Patrons.signup(db, body.name, body.email, body.password),
        session_factory=lending.session,
    )
    return auth.issue_token(patron.id, patron.role)


@router.post("/auth/login", response_model=TokenOut)
def login(body: LoginRequest, lending: Lending = Depends(get_lending)):
    patron = run_in_transaction(
        lambda db: Patrons.authenticate(db, body.email, body.password),
        session_factory=lending.session,
    )
    return auth.issue_token(patron.id, patron.role)


@router.post("/items", status_code=status.HTTP_201_CREATED, response_model=ItemOut)
def create_item(body: ItemCreate, principal: Principal = Depends(admin_principal),
                lending: Lending = Depends(get_lending)):
    return run_in_transaction(
        lambda db: ItemOut.model_validate(Catalog.add(db, body.title, body.copies)),
        session_factory=lending.session,
    )


@router.get("/items", response_model=ItemPage)
def list_items(page: int = Query(1, ge=1),
               page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
               sort_by: str = "id",
               sort_direction: str = Query("ASC", pattern="^(ASC|DESC|asc|desc)$"),
               principal: Principal = Depends(current_principal),
               lending: Lending = Depends(get_lending)):
    rows, total = run_in_transaction(
        lambda db: Catalog.list(db, page=page, page_size=page_size,
                                sort_by=sort_by, sort_direction=sort_direction),
        session_factory=lending.session,
    )
    return ItemPage(
        total=total,
        current_page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
        data=[ItemOut.model_validate(row) for row in rows],
    )


@router.get("/items/{item_id}", response_model=ItemOut)
def get_item(item_id: int, principal: Principal = Depends(current_principal),
             lending: Lending = Depends(get_lending)):
    return run_in_transaction(
        lambda db: ItemOut.model_validate(Catalog.find(db, item_id)),
        session_factory=lending.session,
    )


@router.patch("/items/{item_id}", response_model=ItemOut)
def update_item(item_id: int, body: ItemUpdate,
                principal: Principal = Depends(admin_principal),
                lending: Lending = Depends(get_lending)):
    return run_in_transaction(
        lambda db: ItemOut.model_validate(Catalog.update(
            db, item_id, title=body.title, total_copies=body.total_copies)),
        session_factory=lending.session,
    )


@router.post("/items/{item_id}/borrow", status_code=status.HTTP_202_ACCEPTED,
             response_model=BorrowResponse)
def borrow_item(item_id: int, body: BorrowRequest,
                principal: Principal = Depends(borrower_principal),
                lending: Lending = Depends(get_lending)):
    loan = lending.request_borrow(principal, item_id, body.requested_days)
    return BorrowResponse(loan_id=loan.id)


@router.get("/loans", response_model=Page)
def list_loans(status: Optional[LoanStatus] = None,
               patron_id: Optional[int] = None,
               item_id: Optional[int] = None,
               page: int = Query(1, ge=1),
               page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
               sort_by: str = "id",
               sort_direction: str = Query("ASC", pattern="^(ASC|DESC|asc|desc)$"),
               principal: Principal = Depends(admin_principal),
               lending: Lending = Depends(get_lending)):
    return lending.list_loans(
        status=status, patron_id=patron_id, item_id=item_id, page=page,
        page_size=page_size, sort_by=sort_by, sort_direction=sort_direction,
    )


@router.get("/loans/{loan_id}", response_model=LoanOut)
def get_loan(loan_id: int, principal: Principal = Depends(admin_principal),
             lending: Lending = Depends(get_lending)):
    return lending.find_one(loan_id)


@router.post("/loans/{loan_id}/approve", response_model=LoanOut)
def approve_loan(loan_id: int, principal: Principal = Depends(admin_principal),
                 lending: Lending = Depends(get_lending)):
    return lending.approve(principal, loan_id)


@router.post("/loans/{loan_id}/reject", response_model=LoanOut)
def reject_loan(loan_id: int, principal: Principal = Depends(admin_principal),
                lending: Lending = Depends(get_lending)):
    return lending.reject(principal, loan_id)


@router.post("/loans/{loan_id}/return", response_model=Message)
def return_loan(loan_id: int, principal: Principal = Depends(borrower_principal),
                lending: Lending = Depends(get_lending)):
    return Message(message=lending.return_item(principal, loan_id))


@router.get("/items/{item_id}/audit", response_model=ItemAudit)
def audit_item(item_id: int, principal: Principal = Depends(admin_principal),
               lending: Lending = Depends(get_lending)):
    return lending.audit(item_id)


@router.delete("/items/{item_id}", response_model=Message)
def delete_item(item_id: int, principal: Principal = Depends(admin_principal),
                lending: Lending = Depends(get_lending)):
    message = run_in_transaction(
        lambda db: Catalog.remove(db, item_id, lending),
        session_factory=lending.session,
    )
    return Message(message=message)
