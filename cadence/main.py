"""Main FastAPI application for the recurring task service."""
import logging

from fastapi import FastAPI

from cadence import __version__
from cadence.db.init import init_db
from cadence.middleware.cors import add_cors_middleware
from cadence.routers import recurring_tasks_router
from cadence.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Cadence Recurring Tasks API",
    description="Recurring task rules, materialized task instances and retention",
    version=__version__,
)

# Add CORS middleware
add_cors_middleware(app)


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    try:
        init_db()
    except Exception as e:
        logger.warning(f"Database initialization failed: {str(e)}")
        logger.warning("Server will continue but database operations may fail.")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/metrics")
async def get_metrics():
    """Materialization and cleanup counters."""
    return metrics_collector.get_metrics()


app.include_router(recurring_tasks_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cadence.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
