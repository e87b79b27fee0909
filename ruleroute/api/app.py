"""
Rules API application.

Run with:
    uvicorn ruleroute.api.app:app --port 9100
"""

from fastapi import FastAPI

from ruleroute import __version__
from ruleroute.api.routes import router as rules_router
from ruleroute.core.config import get_settings
from ruleroute.core.logging_config import setup_logging


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(level=settings.log_level, service_name="rules-api")

    app = FastAPI(title="ruleroute", version=__version__)
    app.include_router(rules_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
