# divein/main.py
import logging
from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# load .env before settings are read
load_dotenv()

from divein.config import settings
from divein.db import close_client, create_indexes, ping
from divein.errors import DiveInError, divein_error_handler, request_validation_error_handler
from divein.routes.auth.auth import router as auth_router
from divein.routes.dashboard import router as dashboard_router
from divein.routes.opportunities import router as opportunities_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Community bulletin for opportunities posted by organizations",
        version=settings.app_version,
        debug=settings.debug,
    )

    # CORS - tighten in production
    if settings.allowed_origins == "*":
        cors_origins = ["*"]
    else:
        cors_origins = [o.strip() for o in settings.allowed_origins.split(",")]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DiveInError, divein_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(auth_router, prefix="/auth")
    app.include_router(opportunities_router, prefix="/opportunities")
    app.include_router(dashboard_router, prefix="/dashboard")

    @app.on_event("startup")
    async def on_startup():
        await create_indexes()
        logger.info("%s %s started", settings.app_name, settings.app_version)

    @app.on_event("shutdown")
    async def on_shutdown():
        close_client()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "status": "running",
            "version": settings.app_version,
        }

    @app.get("/health")
    async def health():
        try:
            database_ok = await ping()
        except Exception as exc:
            logger.exception("Database ping failed: %s", exc)
            database_ok = False
        return JSONResponse(
            status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "ok" if database_ok else "degraded", "database": database_ok},
        )

    return app


app = create_app()
