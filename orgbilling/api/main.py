from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orgbilling.api.middleware import billing_error_handler
from orgbilling.api.routes.organizations import router as organizations_router
from orgbilling.api.routes.plans import router as plans_router
from orgbilling.api.routes.subscriptions import router as subscriptions_router
from orgbilling.api.routes.webhooks import router as webhooks_router
from orgbilling.core.config import settings
from orgbilling.core.errors import BillingError


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.log_level.upper())
    yield


app = FastAPI(title="Organization Billing", lifespan=lifespan)
app.add_exception_handler(BillingError, billing_error_handler)

if settings.cors_origins():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["HEAD", "GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

app.include_router(plans_router)
app.include_router(organizations_router)
app.include_router(subscriptions_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
