import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from app.api.routes_api import router as api_router
from app.core.auth import BasicAuthMiddleware
from app.core.config import get_settings
from app.core.dependencies import Services, build_services

load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application; tests pass prebuilt services."""

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        """Application lifespan context manager."""
        owned = services is None
        app.state.services = services or build_services(get_settings())
        try:
            yield
        finally:
            if owned:
                try:
                    await app.state.services.aclose()
                except Exception as e:
                    logger.error(f"Error closing services: {e}")

    app = FastAPI(
        title="Resolvarr",
        description=(
            "Search-driven STRM library materializer with on-demand stream resolution"
        ),
        version="0.1.0",
        lifespan=app_lifespan,
    )
    app.add_middleware(BasicAuthMiddleware)
    app.include_router(api_router, prefix="/api")
    return app


configure_logging(get_settings().debug)

app = create_app()
