import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stock_reconciler.core.exceptions import (
    DuplicateConstraintViolation,
    NotFoundError,
    PersistenceFailure,
    ReconciliationError,
)

logger = logging.getLogger(__name__)


def setup_exception_handlers(app: FastAPI) -> None:
    """Translate service exceptions into HTTP responses"""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(DuplicateConstraintViolation)
    async def duplicate_handler(request: Request, exc: DuplicateConstraintViolation):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PersistenceFailure)
    async def persistence_handler(request: Request, exc: PersistenceFailure):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ReconciliationError)
    async def reconciliation_handler(request: Request, exc: ReconciliationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})
