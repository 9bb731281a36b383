#!/usr/bin/env python
"""
    Item Schemas for Loanly,
    catalog records, catalog edits and the counter audit.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from loanly.schemas.loan import Page


class ItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    copies: int = Field(1, ge=0)


class ItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    total_copies: Optional[int] = Field(None, ge=0)

    class Config:
        # available_copies follows total_copies and is never set by hand
        extra = "forbid"


class ItemOut(BaseModel):
    id: int
    title: str
    total_copies: int
    available_copies: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 5,
                "title": "Dune",
                "total_copies": 2,
                "available_copies": 1,
                "created_at": "2025-10-01T12:00:00Z",
                "updated_at": "2025-10-01T12:00:00Z"
            }
        }


class ItemPage(Page):
    data: List[ItemOut]


class ItemAudit(BaseModel):
    item_id: int
    total_copies: int
    available_copies: int
    active_loans: int
    consistent: bool
