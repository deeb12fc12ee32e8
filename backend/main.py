from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from api.v1 import magma, assets
from core.config import settings
from core.errors import LedgerError
from db.base import initialize_database
from db.session import engine, SessionLocal
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import error_json

# Configure logging with date-based files and TTL retention
logger = configure_logging("magma_ledger")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await initialize_database()
        logger.info("SQL database initialized")
    except SQLAlchemyError as e:
        logger.warning(f"SQL init skipped or failed: {e}")
    logger.info("Application startup complete")
    yield
    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
    return error_json(exc.message, exc.status_code, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    logger.info(f"Rejected malformed request at {request.url.path}: {fields}")
    return error_json("Invalid input", 400, {"fields": fields})


# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}")
    return error_json("Internal error", 500)

app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture wallet and API path
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(magma.router, tags=["MAGMA"])
app.include_router(assets.router, tags=["Assets"])


@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}


@app.get("/health")
async def health_check():
    # Actively check DB connectivity
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        db_status = "sql_connected"
    except SQLAlchemyError as e:
        logger.warning(f"Health SQL check failed: {e}")
        db_status = "sql_unavailable"
    return {"status": "healthy", "database": db_status}
