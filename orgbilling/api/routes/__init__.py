from orgbilling.api.routes.organizations import router as organizations_router
from orgbilling.api.routes.plans import router as plans_router
from orgbilling.api.routes.subscriptions import router as subscriptions_router
from orgbilling.api.routes.webhooks import router as webhooks_router

__all__ = [
    "organizations_router",
    "plans_router",
    "subscriptions_router",
    "webhooks_router",
]
