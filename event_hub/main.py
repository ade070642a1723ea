from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database.dynamodb import ConnectionManager
from .errors import (
    DatabaseConnectionError,
    DomainError,
    ErrorCode,
    FieldValidationError,
)
from .logging_config import configure_logging
from .routers import bookings, events

logger = structlog.get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}


def error_response(code: ErrorCode, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_CODE[code],
        content={
            "success": False,
            "error": {"message": message, "code": code.value, **extra},
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Raises ConfigurationError when DYNAMODB_URL is missing: refuse to start
    app.state.connection_manager = ConnectionManager.from_env()
    logger.info("app_started", table=app.state.connection_manager.table_name)
    yield
    app.state.connection_manager.disconnect()


app = FastAPI(
    title="Dev Event Hub API",
    version="1.0.0",
    description="Event listings with slug-addressed detail pages and bookings",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS for docs UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, FieldValidationError):
        return error_response(exc.code, exc.message, field=exc.field)
    return error_response(exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
    return error_response(
        ErrorCode.BAD_REQUEST, "Request body is invalid.", field=field
    )


@app.exception_handler(DatabaseConnectionError)
async def connection_error_handler(request: Request, exc: DatabaseConnectionError):
    logger.error("database_unavailable", error=str(exc))
    return error_response(ErrorCode.INTERNAL_ERROR, "Unexpected server error.")


# Include routers
app.include_router(events.router)
app.include_router(bookings.router)


@app.get("/")
def read_root():
    return {"message": "Dev Event Hub API", "status": "running"}
