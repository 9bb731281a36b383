#!/usr/bin/env python
"""
    Loan Schemas for Loanly,
    request bodies, loan records and the paginated listing envelope.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field
from loanly.configs import MAX_LOAN_DAYS
from loanly.core.models import LoanStatus


class BorrowRequest(BaseModel):
    requested_days: int = Field(..., ge=1, le=MAX_LOAN_DAYS)


class BorrowResponse(BaseModel):
    loan_id: int


class LoanOut(BaseModel):
    id: int
    item_id: int
    patron_id: int
    status: LoanStatus
    requested_at: datetime
    due_at: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "item_id": 5,
                "patron_id": 2,
                "status": "PENDING",
                "requested_at": "2025-10-01T12:00:00Z",
                "due_at": "2025-10-08T12:00:00Z"
            }
        }


class Page(BaseModel):
    total: int
    current_page: int = Field(..., alias="currentPage")
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")
    data: List[LoanOut]

    class Config:
        populate_by_name = True


class Message(BaseModel):
    message: str
