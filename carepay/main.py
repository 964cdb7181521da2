import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - register tables with Base
from .config import ENVIRONMENT, STRIPE_SECRET_KEY, TWILIO_PHONE_NUMBER
from .database import Base, SessionLocal, engine
from .dependencies import get_release_scheduler
from .domain.caregivers.router import router as caregivers_router
from .domain.payments.router import router as bookings_router
from .routes.dashboard import router as dashboard_router
from .routes.sms import router as sms_router
from .services.release_scheduler import InProcessReleaseScheduler
from .services.retention import run_retention_loop
from .shared.errors import CarePayError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    logger.info(f"Environment: {ENVIRONMENT}")
    logger.info(f"Twilio configuration: {'OK' if TWILIO_PHONE_NUMBER else 'MISSING'}")
    logger.info(f"Stripe configuration: {'OK' if STRIPE_SECRET_KEY else 'MISSING'}")

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    scheduler = get_release_scheduler()
    retention_task = None
    if isinstance(scheduler, InProcessReleaseScheduler):
        # No arq worker in this mode, so the daily sweep runs here
        retention_task = asyncio.create_task(run_retention_loop(SessionLocal))

    yield

    logger.info("Application shutting down...")
    if retention_task:
        retention_task.cancel()
    await scheduler.shutdown()


app = FastAPI(title="CarePay API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(CarePayError)
async def carepay_exception_handler(request: Request, exc: CarePayError):
    logger.warning(f"{request.method} {request.url.path} rejected: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(caregivers_router)
app.include_router(bookings_router)
app.include_router(sms_router)
app.include_router(dashboard_router)


@app.get("/")
def root():
    return {"message": "CarePay API", "version": "1.0.0", "status": "active"}
