import logging
import uvicorn
from fastapi import FastAPI
from app.api.errors import register_error_handlers
from app.api.routers import navigation, step1, step2, step3, step4
from app.core.config import settings
from app.services.cleanup_service import setup_cleanup_tasks

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logging.getLogger("httpx").setLevel(logging.WARNING)

# Create FastAPI application
app = FastAPI(title=settings.PROJECT_NAME)

# Include routers
app.include_router(step1.router)
app.include_router(step2.router)
app.include_router(step3.router)
app.include_router(step4.router)
app.include_router(navigation.router)

register_error_handlers(app)

# Set up background cleanup tasks
setup_cleanup_tasks(app)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8005, reload=True)
