"""
GymHub Backend Server
FastAPI application entry point
"""
import logging
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

# Import settings
from config.settings import settings

# Import database and register every model with the metadata
from database.base import engine, Base
import modules  # noqa: F401
import jobs.models  # noqa: F401

from jobs.scheduler import get_job_scheduler
from modules.auth.routes import router as auth_router
from modules.users.routes import router as users_router
from modules.tenants.routes import router as tenants_router, locations_router
from modules.members.routes import router as members_router
from modules.memberships.routes import router as plans_router, subscriptions_router
from modules.invoices.routes import router as invoices_router
from modules.attendance.routes import router as attendance_router
from modules.loyalty.routes import router as loyalty_router
from modules.referrals.routes import router as referrals_router
from modules.vouchers.routes import router as vouchers_router
from modules.webhooks.routes import router as webhooks_router
from modules.notifications.routes import router as notifications_router

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting GymHub Backend Server...")
    logger.info(f"📊 Database: {settings.DATABASE_URL}")
    logger.info(f"🔧 Debug Mode: {settings.DEBUG}")

    # Create all tables
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables created/verified successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization error: {e}")

    scheduler = get_job_scheduler()
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("⏸️ Job scheduler disabled")

    yield

    # Shutdown
    scheduler.stop()
    logger.info("👋 Shutting down GymHub Backend Server...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600  # Cache preflight requests for 1 hour
)


# Health check endpoint
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


ROUTERS = [
    (auth_router, "/auth", "Authentication"),
    (users_router, "/users", "Users"),
    (tenants_router, "/platform/tenants", "Platform Tenants"),
    (locations_router, "/locations", "Locations"),
    (members_router, "/members", "Members"),
    (plans_router, "/plans", "Membership Plans"),
    (subscriptions_router, "/subscriptions", "Subscriptions"),
    (invoices_router, "/invoices", "Invoices"),
    (attendance_router, "/attendance", "Attendance"),
    (loyalty_router, "/loyalty", "Loyalty"),
    (referrals_router, "/referrals", "Referrals"),
    (vouchers_router, "/vouchers", "Vouchers"),
    (webhooks_router, "/webhooks", "Webhooks"),
    (notifications_router, "/notifications", "Notifications"),
]

for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=f"{settings.API_V1_PREFIX}{prefix}", tags=[tag])
logger.info(f"✅ {len(ROUTERS)} route groups loaded")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Last-resort handler so unexpected errors still return JSON"""
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None)
        )

    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
