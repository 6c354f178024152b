import logging.config

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.media import files_router as media_files_router
from app.api.messages import router as messages_router
from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.ws import router as ws_router
from app.config import get_settings
from app.database import create_tables
from app.services import TenorClient, build_gateway, build_media_host

settings = get_settings()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": settings.log_level.upper(),
    },
    "loggers": {
        "huddle": {
            "handlers": ["default"],
            "level": "DEBUG" if settings.debug else "INFO",
            "propagate": False,
        }
    },
}


logging.config.dictConfig(LOGGING_CONFIG)

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_origin_regex=settings.cors_allow_origin_regex,
)

app.state.media_host = build_media_host(settings)
app.state.gateway = build_gateway(settings, media_host=app.state.media_host)
app.state.gif_provider = TenorClient(
    settings.tenor_api_key,
    base_url=settings.tenor_base_url,
    client_key=settings.tenor_client_key,
    limit=settings.gif_search_limit,
    timeout=settings.gif_search_timeout_seconds,
)


@app.get("/health", tags=["system"])
def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


@app.on_event("startup")
async def _startup() -> None:
    create_tables()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await app.state.gateway.shutdown()


app.include_router(api_router, prefix="/api")
app.include_router(messages_router)
app.include_router(media_files_router)
app.include_router(ws_router)
app.include_router(metrics_router)
