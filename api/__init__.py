"""REST API module for the OTC desk.

This module provides HTTP endpoints for:
- Creating, updating, pausing and withdrawing consignments
- Browsing consignments (buyer-safe views for non-owners)
- Reserving and releasing inventory during deal execution
- Matching quote terms and computing the agent commission
- Recording and reading executed deals
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings_conf
from locks import close_lock_provider, init_lock_provider
from store import close_store, init_store
from workers import LeaseReaper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    await init_store()
    lock_provider = await init_lock_provider()

    reaper = LeaseReaper(lock_provider, settings_conf['lease_reap_interval'])
    reaper.start()

    yield

    # Shutdown
    logger.info("Shutting down API...")
    await reaper.stop()
    await close_lock_provider()
    await close_store()

# Create FastAPI app
app = FastAPI(
    title="OTC Desk API",
    description="REST API for OTC consignments and deals",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    """Service name and backend in use."""
    return {
        "service": app.title,
        "version": app.version,
        "store_backend": settings_conf['store_backend']
    }

# Import and include all routers
from .consignments import router as consignments_router
from .deals import router as deals_router

app.include_router(consignments_router)
app.include_router(deals_router)
