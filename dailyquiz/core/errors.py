"""Quiz error taxonomy and the JSON mapping shared by all routers.

Every failure a client can see is a short machine-readable code; UI
collaborators branch on these exact strings.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError


logger = logging.getLogger(__name__)


class QuizError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "bad_request"

    def __init__(self, code: str | None = None):
        self.code = code or self.default_code
        super().__init__(self.code)


class ValidationError(QuizError):
    default_code = "missing_fields"


class AuthorizationError(QuizError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthorized"


class ForbiddenError(QuizError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFoundError(QuizError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConflictError(QuizError):
    # conflicts are part of normal play, so they stay 400 like validation
    default_code = "conflict"


class UpstreamError(QuizError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "server_error"


class PersistenceError(QuizError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "server_error"


def error_response(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": code})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuizError)
    async def quiz_error_handler(request: Request, exc: QuizError) -> JSONResponse:
        if exc.status_code >= 500:
            # details stay in the log, the client only gets the code
            logger.error("%s %s failed: %r", request.method, request.url.path, exc.__cause__ or exc)
        return error_response(exc.status_code, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("invalid request on %s: %s", request.url.path, exc.errors())
        return error_response(status.HTTP_400_BAD_REQUEST, "missing_fields")

    @app.exception_handler(SQLAlchemyError)
    async def db_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("database error on %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error")
