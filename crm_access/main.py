"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crm_access.core.config import settings
from crm_access.core.middleware import setup_middleware
from crm_access.core.exceptions import CRMAccessError, Unauthenticated

from crm_access.api.auth import router as auth_router
from crm_access.api.users import router as users_router
from crm_access.api.branches import router as branches_router
from crm_access.api.directory import router as directory_router
from crm_access.api.audit import router as audit_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("crm_access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    from crm_access.services.mail_service import mail_service
    if not mail_service.is_configured():
        logger.warning("SMTP not configured; password reset mail is unavailable")

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="CRM Access API",
    description="Authentication, authorization, branch partitioning and audit for the CRM",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(CRMAccessError)
async def access_exception_handler(request: Request, exc: CRMAccessError):
    content = {"detail": exc.message}
    headers = None
    if isinstance(exc, Unauthenticated):
        # Tell the client to drop its stored token
        content["clear_credentials"] = True
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(branches_router, prefix="/api")
app.include_router(directory_router, prefix="/api")
app.include_router(audit_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
