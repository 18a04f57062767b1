"""
FastAPI Application Entry Point.

This is the main application file for the IFTA Mileage Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from ifta_backend.app.core.config import settings
from ifta_backend.app.api.v1.router import router as api_v1_router
from ifta_backend.app.db.session import engine, Base
from ifta_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from ifta_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from ifta_backend.app.models.trip_leg import TripLeg, TripLegJurisdictionMiles
from ifta_backend.app.models.odometer_reconciliation import OdometerReconciliation
from ifta_backend.app.models.truck_location import TruckLocation
from ifta_backend.app.models.audit_log import AuditLog

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="IFTA mileage apportionment and reconciliation engine",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "routing_provider_configured": bool(settings.here_api_key),
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the IFTA Mileage Backend API",
        "docs": "/docs",
        "health": "/health",
    }
