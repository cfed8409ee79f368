import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from . import models  # noqa: F401
from .cache import build_cache
from .database import Base, engine
from .dependencies import AppContext
from .domain.calendar.router import router as calendar_router
from .domain.calendar.router import teams_router
from .domain.staffing.router import router as staffing_router
from .domain.staffing.router import staff_router
from .store import StoreError, create_store

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
    if config.STORE_BACKEND == "sql":
        try:
            Base.metadata.create_all(bind=engine, checkfirst=True)
            logger.info("Database tables created successfully")
        except Exception as e:
            # Ignore "already exists" errors from race conditions between workers
            error_msg = str(e)
            if "already exists" in error_msg:
                logger.info("Database tables already exist (created by another worker)")
            else:
                logger.error(f"Failed to create database tables: {e}")

    context = AppContext(create_store(), cache=build_cache())
    app.state.context = context

    if config.DEDUP_ON_STARTUP:
        context.dedup.schedule()
        logger.info(f"Staff assignment cleanup scheduled in {context.dedup.delay}s")

    yield
    logger.info("Application shutting down...")
    await context.close()


app = FastAPI(title="EventFlow API", version=config.API_VERSION, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are reported as 400 with the field errors"""
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    """Reads that hit a store failure outside an operation boundary"""
    logger.error(f"{request.method} {request.url.path} - Store error: {exc.message}")
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} - Unhandled error")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(calendar_router)
app.include_router(teams_router)
app.include_router(staffing_router)
app.include_router(staff_router)


@app.get("/")
def root():
    return {"message": "EventFlow API is running"}


@app.get("/health")
async def health(request: Request):
    context = getattr(request.app.state, "context", None)
    return {
        "status": "healthy",
        "version": config.API_VERSION,
        "store": config.STORE_BACKEND,
        "inFlight": len(context.in_flight.keys) if context else 0,
    }
