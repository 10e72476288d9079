import logging
from pathlib import Path
from typing import Optional

# Load environment variables (ensure we load backend/.env regardless of where the app is started)
from dotenv import load_dotenv, find_dotenv

_found_env = find_dotenv(filename=".env")
if not _found_env:
    # Fallback to backend/.env relative to this file
    _found_env = str(Path(__file__).resolve().parents[1] / ".env")
load_dotenv(_found_env)

# Now import FastAPI and other modules after environment is loaded
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.exceptions import ServiceError
from app.services.catalog import CategoryService, TagService
from app.services.dashboard import DashboardAggregator
from app.services.lifecycle import ResourceLifecycleEngine
from app.services.moderation import ModerationGateway

# Configure logging
logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        # Details were logged where the transaction failed; keep the response generic
        return JSONResponse(status_code=exc.status_code, content={"detail": "Operation failed"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app(session_factory: Optional[sessionmaker] = None) -> FastAPI:
    """
    Build the API around a session factory.

    Every service shares the factory (and so the engine's connection pool);
    tests pass their own to run against a throwaway database.
    """
    if session_factory is None:
        from app.database import SessionLocal
        session_factory = SessionLocal

    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        description="Community resource directory with moderation",
        version="0.1.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    lifecycle = ResourceLifecycleEngine(session_factory)
    app.state.gateway = ModerationGateway(lifecycle)
    app.state.categories = CategoryService(session_factory)
    app.state.tags = TagService(session_factory)
    app.state.dashboard = DashboardAggregator(session_factory)

    app.add_exception_handler(ServiceError, service_error_handler)

    # Import and register routers
    from app.routers import admin, categories, resources, tags

    app.include_router(resources.router, prefix="/api")
    app.include_router(categories.router, prefix="/api")
    app.include_router(tags.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
