from notifier.routes.auth import auth_router
from notifier.routes.repositories import repositories_router
from notifier.routes.webhooks import webhooks_router

__all__ = [
    "auth_router",
    "repositories_router",
    "webhooks_router",
]
