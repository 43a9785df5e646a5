from fastapi import APIRouter, Depends
from cashback_webhook.core.config import Settings, get_settings


router = APIRouter()


@router.get("/health", summary="Basic health check endpoint")
async def health_check(settings: Settings = Depends(get_settings)):
    """
    Liveness only. Reports whether the webhook secret and the shop
    allow-list are configured, without revealing either.
    """
    return {
        "status": "ok",
        "env": settings.ENV,
        "secret_configured": bool(settings.SHOPIFY_WEBHOOK_SECRET),
        "allowed_domains_configured": bool(settings.allowed_domains),
    }
