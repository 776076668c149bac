"""
Society Gate - Entry/exit verification API
FastAPI + SQLModel (multi-society)
"""
from dotenv import load_dotenv
load_dotenv()  # Load .env before any other imports

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from society_gate import __version__
from society_gate.api.v1 import (
    activity,
    deliveries,
    emergencies,
    residents,
    staff,
    vehicles,
    verification,
    visitors,
)
from society_gate.config import settings
from society_gate.domain.errors import VerificationError
from society_gate.infrastructure.database import init_db

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    if settings.create_tables:
        await init_db()

    logger.info(
        "service_started",
        service=settings.service_name,
        version=__version__,
        notifications=bool(settings.notification_webhook_url),
    )

    yield

    # Shutdown
    logger.info("service_stopped", service=settings.service_name)


app = FastAPI(
    title="Society Gate API",
    description="Entry/exit verification for deliveries, visitors, staff, vehicles and emergency alerts",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
app.include_router(verification.router, prefix="/api/v1", tags=["verification"])
app.include_router(deliveries.router, prefix="/api/v1/deliveries", tags=["deliveries"])
app.include_router(visitors.router, prefix="/api/v1/visitors", tags=["visitors"])
app.include_router(staff.router, prefix="/api/v1/staff", tags=["staff"])
app.include_router(vehicles.router, prefix="/api/v1/vehicles", tags=["vehicles"])
app.include_router(emergencies.router, prefix="/api/v1/emergencies", tags=["emergencies"])
app.include_router(residents.router, prefix="/api/v1/residents", tags=["residents"])
app.include_router(activity.router, prefix="/api/v1/activity", tags=["activity"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.service_name}


@app.get("/")
async def root():
    return {"message": "Society Gate API", "docs": "/docs"}
