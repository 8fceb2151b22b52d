from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import logging
from api.routes import ai_router, import_router
from settings.config import settings
from settings.logging_config import configure_logging

logger = logging.getLogger(__name__)


def get_app() -> FastAPI:
    configure_logging()
    logger.info("Starting statement ingestion API")
    app = FastAPI(title="Statement Ingestion API")

    origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Content-Type", "X-PDF-Password"],
    )

    # Routers
    app.include_router(ai_router)
    app.include_router(import_router)
    logger.info("Routers initialized successfully")

    # Health
    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "ok"}

    logger.info("API started")
    return app


# ASGI app instance
app = get_app()
