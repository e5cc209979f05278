import logging

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

import models  # noqa: F401
from core.celery import celery_app
from core.config import settings
from core.db import Base, engine
from routes.admin import router as admin_router
from routes.auth import router as auth_router
from routes.mpesa import router as mpesa_router
from routes.notifications import router as notifications_router
from routes.payments import router as payments_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# Ensure tables exist (for dev/test; in prod use migrations)
Base.metadata.create_all(bind=engine)

app.include_router(auth_router)
app.include_router(mpesa_router)
app.include_router(payments_router)
app.include_router(notifications_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "mpesa_environment": settings.MPESA_ENVIRONMENT,
    }


@app.get("/celery-health")
async def celery_health_check():
    """Check that a worker is available to deliver notification e-mails"""
    try:
        stats = celery_app.control.inspect(timeout=1.0).stats()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
    if stats:
        return {"status": "healthy", "workers": len(stats)}
    return {"status": "no_workers", "message": "No Celery workers running"}


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=settings.DEBUG,
    )
