"""
Shared router dependencies: the session object and error → HTTP mapping.
"""

from fastapi import HTTPException, Request

from generation.errors import (
    AutoMCQError, BulkGenerationError, ConfigMismatchError, ConfirmationRequiredError,
    NotFoundError, PersistenceError, RenderError,
)
from services.session import BankSession


def get_session(request: Request) -> BankSession:
    """FastAPI dependency — the process-wide BankSession created at startup."""
    return request.app.state.session


def http_error(exc: AutoMCQError) -> HTTPException:
    if isinstance(exc, ConfigMismatchError):
        return HTTPException(status_code=422, detail={"message": str(exc), "details": exc.details})
    if isinstance(exc, BulkGenerationError):
        return HTTPException(status_code=422, detail={"message": str(exc), "errors": exc.errors})
    if isinstance(exc, ConfirmationRequiredError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, RenderError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))
