import asyncio
from contextlib import asynccontextmanager, suppress

import sentry_sdk
import structlog
from fastapi import FastAPI

from notifier.config import settings
from notifier.logger import setup_logging
from notifier.middleware import LoggingMiddleware
from notifier.routes import auth_router, repositories_router, webhooks_router
from notifier.services import Services, build_services

logger = structlog.get_logger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=0.1,
        profiles_sample_rate=0.1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    consumer_task: asyncio.Task[None] | None = None

    if app.state.start_consumer:
        consumer_task = asyncio.create_task(services.consumer.run())

    yield

    if consumer_task is not None:
        services.consumer.stop()
        consumer_task.cancel()
        with suppress(asyncio.CancelledError):
            await consumer_task

    await services.retry_handler.close()


def create_app(
    services: Services | None = None, start_consumer: bool | None = None
) -> FastAPI:
    app = FastAPI(title="Repository notifier", lifespan=lifespan)
    app.state.services = services or build_services(settings)
    app.state.start_consumer = (
        settings.consumer_enabled if start_consumer is None else start_consumer
    )

    app.add_middleware(LoggingMiddleware)

    @app.get("/", tags=["health"])
    async def read_root():
        return {"status": "ok"}

    app.include_router(webhooks_router)
    app.include_router(auth_router)
    app.include_router(repositories_router)
    return app


setup_logging()
app = create_app()
