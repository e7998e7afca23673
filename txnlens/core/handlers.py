"""
Global exception handlers for FastAPI
"""
import logging

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from txnlens.core.exceptions import (
    UnprocessableEntityException,
    BadRequestException,
    NotFoundException,
    InternalServerErrorException,
    UnknownCategoryError,
    ResponseBody,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    """Register all exception handlers to the FastAPI app"""

    @app.exception_handler(UnprocessableEntityException)
    async def unprocessable_entity_exception_handler(request, exc: UnprocessableEntityException):
        """Handle UnprocessableEntityException (422)"""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ResponseBody(
                message=exc.message,
                errors=exc.errors,
                data=None
            ).model_dump()
        )

    @app.exception_handler(UnknownCategoryError)
    async def unknown_category_exception_handler(request, exc: UnknownCategoryError):
        """Handle UnknownCategoryError (422)"""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ResponseBody(
                message="Unknown category",
                errors=[str(exc)],
                data=None
            ).model_dump()
        )

    @app.exception_handler(BadRequestException)
    async def bad_request_exception_handler(request, exc: BadRequestException):
        """Handle BadRequestException (400)"""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ResponseBody(
                message=exc.message,
                errors=exc.errors,
                data=None
            ).model_dump()
        )

    @app.exception_handler(NotFoundException)
    async def not_found_exception_handler(request, exc: NotFoundException):
        """Handle NotFoundException (404)"""
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ResponseBody(
                message=exc.message,
                errors=exc.errors,
                data=None
            ).model_dump()
        )

    @app.exception_handler(InternalServerErrorException)
    async def internal_server_error_exception_handler(request, exc: InternalServerErrorException):
        """Handle InternalServerErrorException (500)"""
        logger.error("Internal error: %s %s", exc.detail, exc.errors)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseBody(
                message=exc.message,
                errors=exc.errors,
                data=None
            ).model_dump()
        )
