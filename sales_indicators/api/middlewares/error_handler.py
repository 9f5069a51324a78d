"""
Error handling for the API

Every error response has the same shape: a JSON object with a single
``error`` string field.
"""

from fastapi import Request, status, FastAPI
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
import logging
import traceback

from sales_indicators.api.services.report_service import ReportQueryError

# Configure logging
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Erreur interne du serveur"


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    """Build the fixed-shape error body"""
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def report_exception_handler(request: Request, exc: ReportQueryError):
    """
    Handle reports that propagate their data-access failures
    """
    logger.error(f"Report {exc.report} failed - URL: {request.url}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle validation errors in a user-friendly way
    """
    messages = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
    logger.warning(f"Validation error - URL: {request.url} - Errors: {messages}")

    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "; ".join(messages) or "Requête invalide")


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with the common error shape
    """
    if exc.status_code >= 500:
        logger.error(f"HTTP error: {exc.status_code} {exc.detail} - URL: {request.url}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP error: {exc.status_code} {exc.detail} - URL: {request.url}")

    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def general_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler for unhandled exceptions
    """
    logger.error(f"Unhandled exception: {str(exc)} - URL: {request.url}")
    logger.error(traceback.format_exc())

    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)


def add_exception_handlers(app: FastAPI):
    """
    Add all exception handlers to the FastAPI app

    Args:
        app: FastAPI application
    """
    app.add_exception_handler(ReportQueryError, report_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
