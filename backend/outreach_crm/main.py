"""
Outreach Pipeline CRM - FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db, SessionLocal
from .services.followup_rules import get_followup_rule_store, seed_default_rules
from .routers import contacts_router, pipeline_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} API...")
    init_db()
    logger.info("Database initialized")

    if settings.seed_default_rules:
        db = SessionLocal()
        try:
            seed_default_rules(db)
        finally:
            db.close()

    rule_store = get_followup_rule_store()
    rule_store.refresh()
    logger.info(f"Follow-up rules loaded ({len(rule_store)} rules)")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name} API...")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Multi-channel outreach pipeline with follow-up scheduling",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
# Add production URLs from settings
if settings.cors_origins:
    cors_origins.extend(origin.strip() for origin in settings.cors_origins.split(",") if origin.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(contacts_router)
app.include_router(pipeline_router)


@app.get("/api")
def api_root():
    """API root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
