import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from cashback_webhook.core.config import settings
from cashback_webhook.core.exceptions import WebhookError
from cashback_webhook.core.logging import configure_logging
from cashback_webhook.db import session
from cashback_webhook.api.v1 import routes_health, routes_webhook

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # schema is provisioned once here, before the first webhook is accepted
    await session.init_db()
    logger.info(f"{settings.PROJECT_NAME} started in {settings.ENV}")
    yield
    await session.engine.dispose()


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan
    )

    app.include_router(
        routes_health.router,
        prefix="/api/v1"
    )

    app.include_router(
        routes_webhook.router,
        prefix="/api/v1",
        tags=["webhooks"]
    )

    @app.exception_handler(WebhookError)
    async def webhook_error_handler(request, ex: WebhookError):
        return JSONResponse(status_code=ex.status_code, content={"error": ex.message})

    @app.get("/")
    async def root():
        return {"message": "Cashback webhook receiver is running"}
    return app


app = create_app()
