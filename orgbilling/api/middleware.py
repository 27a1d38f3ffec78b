from __future__ import annotations

import logging

from fastapi import Request
from starlette import status
from starlette.responses import JSONResponse, Response

from orgbilling.core.errors import BillingError, NotFoundError

logger = logging.getLogger(__name__)


async def billing_error_handler(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, BillingError):
        raise exc

    if isinstance(exc, NotFoundError):
        return Response(status_code=status.HTTP_404_NOT_FOUND)

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )
