from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.logging import configure_logging
from app.database import engine, Base
from app.models import *

from app.routers import estimates, warehouse, sync

logger = configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(estimates.router)
app.include_router(warehouse.router)
app.include_router(sync.router)


@app.on_event("startup")
def create_tables():
    logger.info("Creating database tables if not exist...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready (%s).", settings.environment)


@app.get("/")
def root():
    """Health check for load balancers and the sync client."""
    return {"service": settings.app_name, "environment": settings.environment, "status": "ok"}
