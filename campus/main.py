"""
Campus Attendance Service
Face + geofence verified class attendance API
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
import logging
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus.core.config import settings
from campus.core.database import get_db, init_db
from campus.modules.attendance import routes as attendance_routes
from campus.modules.directory import routes as directory_routes

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(name)s %(levelname)s: %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


# Create FastAPI app
app = FastAPI(
    title="Campus Attendance",
    description="Class attendance verified by face match and GPS geofence",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(directory_routes.router)
app.include_router(attendance_routes.router)


@app.get("/")
async def root():
    return {
        "service": "Campus Attendance",
        "status": "running",
        "version": "1.0.0",
        "modules": {
            "directory": "enabled",
            "attendance": "enabled"
        }
    }


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Health check endpoint"""
    status = {
        "status": "healthy",
        "database": "connected",
        "cooldown_backend": settings.cooldown_backend,
    }
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        status["status"] = "degraded"
        status["database"] = "unreachable"
    if settings.cooldown_backend == 'redis':
        from campus.core.redis_client import redis_client
        status["redis"] = "connected" if redis_client.ping() else "unreachable"
    return status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
