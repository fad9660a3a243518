from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import uvicorn

from event_checkin.api.deps import build_services
from event_checkin.api.routes import auth, checkin, health, otp, register
from event_checkin.core.config import Settings, settings as default_settings
from event_checkin.core.exceptions import CheckinServiceError
from event_checkin.core.logging import setup_logging
from event_checkin.services.notifier import Mailer
from event_checkin.services.row_store import RowStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RowStore] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """Build the API with its collaborators bound to the given settings"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan events for startup and shutdown"""
        logger.info("🚀 Starting Event Check-in Service...")

        if not app.state.services.store.ping():
            logger.error("❌ Row store unreachable at startup")
            raise RuntimeError("Row store unreachable")
        logger.info("✅ Row store connection successful")

        yield

        logger.info("👋 Shutting down...")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Email verification, household registration and QR check-in",
        version=settings.VERSION,
        debug=settings.DEBUG,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.services = build_services(settings, store=store, mailer=mailer)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CheckinServiceError)
    async def service_error_handler(request: Request, exc: CheckinServiceError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.url.path}: {exc.message} {exc.details}")
        else:
            logger.warning(f"{request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error_code, "detail": exc.message},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "detail": "System error. Please try again."},
        )

    app.include_router(health.router, tags=["Health"])
    app.include_router(otp.router, tags=["OTP"])
    app.include_router(register.router, tags=["Registration"])
    app.include_router(checkin.router, tags=["Check-in"])
    app.include_router(auth.router, tags=["Staff"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "status": "operational",
            "docs": "/docs",
            "endpoints": {
                "health": "/health",
                "send_otp": "/sendOTP",
                "verify_otp": "/verifyOTP",
                "save_or_update": "/saveOrUpdate",
                "checkin": "/checkinQRcode",
                "staff_login": "/loginStaff"
            }
        }

    return app


def run():
    setup_logging(default_settings.LOG_LEVEL, default_settings.LOG_FILE)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
