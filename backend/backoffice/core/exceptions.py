"""
Error rendering.

Every failure leaves the API as `{"error": "<message>"}`. Services raise
`HTTPException`; when `detail` is a dict it is merged into the body so a
handler can attach extra signals such as `needsApproval`.
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.core.logging import get_logger

logger = get_logger(__name__)


def forbidden_needs_approval(message: str = "You need approval to edit this booking") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"error": message, "needsApproval": True},
    )


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            body = dict(exc.detail)
        else:
            body = {"error": str(exc.detail)}
        return JSONResponse(
            content=body,
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", error=str(exc))
        return JSONResponse(
            content={"error": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
