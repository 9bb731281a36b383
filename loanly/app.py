#!/usr/bin/env python3

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loanly.routes import api
from loanly.configs import OPTIONS, ADMIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD
from loanly.core import database
from loanly.core.patrons import Patrons
from loanly.core.exceptions import (
    LoanlyAPIError,
    NotFoundError,
    ExistingLoanError,
    BookUnavailableError,
    InvalidTransitionError,
    InvalidStateError,
    ItemInUseError,
    PermissionDeniedError,
    InvalidQueryError,
    DatabaseError,
    AuthenticationError,
    DuplicatePatronError,
)
from loanly import __version__ as VERSION

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    ExistingLoanError: 409,
    BookUnavailableError: 409,
    ItemInUseError: 409,
    DuplicatePatronError: 409,
    InvalidTransitionError: 400,
    InvalidQueryError: 400,
    AuthenticationError: 401,
    PermissionDeniedError: 403,
    InvalidStateError: 500,
    DatabaseError: 500,
}


def status_for(error: LoanlyAPIError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.init()
    if ADMIN_NAME and ADMIN_EMAIL:
        database.run_in_transaction(
            lambda db: Patrons.ensure_admin(db, ADMIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD)
        )
    yield
    database.session.remove()


app = FastAPI(
    title="Loanly API",
    description="Loanly: request/approval lending of finite-copy items",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(LoanlyAPIError)
async def lending_error_handler(request: Request, exc: LoanlyAPIError):
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log("%s %s -> %s %s: %s", request.method, request.url.path,
        status_code, type(exc).__name__, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


app.include_router(api.router, prefix="/v1/api")

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=OPTIONS['log_level'].upper())
    uvicorn.run("loanly.app:app", **OPTIONS)
