"""
Enrollment - FastAPI application.

Mounts the onboarding router. Run with any ASGI server, e.g.
`uvicorn enrollment.app:app`.
"""

import logging

from fastapi import FastAPI

from enrollment import __version__
from enrollment.logging_setup import configure_logging
from onboarding.api import router as onboarding_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Enrollment", version=__version__)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    app.include_router(onboarding_router)
    return app


app = create_app()
