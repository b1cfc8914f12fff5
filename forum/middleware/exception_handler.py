"""Exception handler for hosts that serve the forum core over FastAPI.

The core itself has no HTTP surface. A host application registers
``forum_exception_handler`` for ``ForumException`` so every error raised by
the services reaches the client as ``{"error", "message", "details"}`` with
the exception's status code.
"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from ..exceptions import ForumException

logger = logging.getLogger(__name__)


async def forum_exception_handler(request: Request, exc: ForumException) -> JSONResponse:
    """
    Handle forum exceptions and return structured JSON responses.

    Client errors (4xx) are logged at INFO; anything else at ERROR.

    Args:
        request: FastAPI request object
        exc: ForumException instance

    Returns:
        JSONResponse with error details
    """
    level = logging.INFO if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"ForumException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the forum exception handler on a host application."""
    app.add_exception_handler(ForumException, forum_exception_handler)
