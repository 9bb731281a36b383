#!/usr/bin/env python

"""
    Loan state machine.

        PENDING --approve--> APPROVED --return--> RETURNED
        PENDING --reject-->  REJECTED

    Every legal move is a row in TRANSITIONS; anything absent is refused.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
from loanly.core.models import LoanStatus
from loanly.core.exceptions import InvalidTransitionError


class Action(enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"


TRANSITIONS = {
    (LoanStatus.PENDING, Action.APPROVE): LoanStatus.APPROVED,
    (LoanStatus.PENDING, Action.REJECT): LoanStatus.REJECTED,
    (LoanStatus.APPROVED, Action.RETURN): LoanStatus.RETURNED,
}

# Actions which hand the reserved copy back to the ledger
RELEASING_ACTIONS = frozenset({Action.REJECT, Action.RETURN})


def next_status(current: LoanStatus, action: Action) -> LoanStatus:
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value} a loan in status {current.name}."
        ) from None


def releases_copy(action: Action) -> bool:
    return action in RELEASING_ACTIONS
