from fastapi import APIRouter

from minimusiker.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe; does not call any provider."""
    return {"status": "ok", "version": settings.APP_VERSION}


@router.get("/config")
async def get_config():
    """Return public configuration."""
    return {
        "appName": settings.APP_NAME,
        "appUrl": settings.APP_URL,
        "logLevel": settings.LOG_LEVEL,
        "integrations": {
            "airtable": bool(settings.AIRTABLE_API_KEY and settings.AIRTABLE_BASE_ID),
            "simplybook": bool(settings.SIMPLYBOOK_API_KEY),
            "shopify": settings.ENABLE_SHOPIFY_INTEGRATION,
            "r2": bool(settings.R2_ENDPOINT),
            "email": bool(settings.RESEND_API_KEY),
        },
    }
