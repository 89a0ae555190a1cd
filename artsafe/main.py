from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from artsafe.config import settings
from artsafe.api.v1 import offers, escrow, disputes, payments, alerts, pricing, gallery, founder, cron
from artsafe.utils.logger import logger

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.APP_DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(offers.router, prefix=f"{settings.API_V1_PREFIX}/offers", tags=["Offers"])
app.include_router(escrow.router, prefix=f"{settings.API_V1_PREFIX}/escrow", tags=["Escrow"])
app.include_router(disputes.router, prefix=f"{settings.API_V1_PREFIX}/disputes", tags=["Disputes"])
app.include_router(payments.router, prefix=f"{settings.API_V1_PREFIX}/payments", tags=["Payments"])
app.include_router(alerts.router, prefix=f"{settings.API_V1_PREFIX}/admin/alerts", tags=["Admin Alerts"])
app.include_router(pricing.router, prefix=f"{settings.API_V1_PREFIX}/pricing", tags=["Pricing"])
app.include_router(gallery.router, prefix=f"{settings.API_V1_PREFIX}/gallery", tags=["Gallery"])
app.include_router(founder.router, prefix=f"{settings.API_V1_PREFIX}/founder", tags=["Founder"])
app.include_router(cron.router, prefix=f"{settings.API_V1_PREFIX}/cron", tags=["Cron"])


@app.get("/")
async def root():
    return {
        "message": "Art Is Safe Backend API",
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    from artsafe.core.scheduler import scheduler, setup_scheduled_tasks
    if settings.APP_ENV != "test":
        setup_scheduled_tasks()
        scheduler.start()
        logger.info("Background job scheduler started")


@app.on_event("shutdown")
async def shutdown_event():
    from artsafe.core.scheduler import scheduler

    if scheduler.running:
        scheduler.shutdown()
    logger.info("Shutting down application")
