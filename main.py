from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool
import io
import structlog
import time
from contextlib import asynccontextmanager

from models import LedgerReport, ErrorResponse, HealthResponse
from services import get_ledger_service
from repositories import LedgerStore, get_ledger_store
from ingest import read_rows
from report import snapshot_accounts
from errors import LedgerError
from config import Settings, get_settings
from logging_config import configure_logging

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Transaction Ledger API")
    yield
    logger.info("Shutting down Transaction Ledger API")

app = FastAPI(
    title=settings.app_name,
    description="Applies a CSV log of deposits, withdrawals and disputes and returns the resulting client accounts",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response


def get_rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health"
)
async def health_check(settings: Settings = Depends(get_settings)):
    return HealthResponse(status="healthy", version=settings.app_version)


def run_ledger(text: str, store: LedgerStore, settings: Settings) -> LedgerReport:
    service = get_ledger_service(store, settings)
    summary = service.process(read_rows(io.StringIO(text, newline="")))
    return LedgerReport(
        accounts=snapshot_accounts(store.accounts(), settings.decimal_places),
        summary=summary
    )


async def read_limited_body(request: Request, max_size: int) -> bytes:
    """Read the request body, refusing anything over ``max_size`` bytes."""
    too_large = HTTPException(
        status_code=413,
        detail="Request body too large"
    )

    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > max_size:
        raise too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_size:
            raise too_large
    return bytes(body)


@app.post(
    "/ledger",
    response_model=LedgerReport,
    status_code=status.HTTP_201_CREATED,
    summary="Process Transactions",
    description="Apply a CSV transaction log (type, client, tx, amount) to a fresh ledger and return every account",
    responses={
        201: {"description": "Transactions processed; rejected records are counted in the summary"},
        400: {"description": "Malformed CSV input"},
        413: {"description": "Request body too large"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(get_rate_limit)
async def process_ledger(
    request: Request,
    store: LedgerStore = Depends(get_ledger_store),
    settings: Settings = Depends(get_settings)
):
    body = await read_limited_body(request, settings.max_request_size)

    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400,
            detail="Request body must be UTF-8 encoded CSV"
        )

    # CPU-bound pass runs in a worker thread.
    try:
        return await run_in_threadpool(run_ledger, text, store, settings)
    except LedgerError as e:
        logger.warning(
            "Ledger request failed",
            error_code=e.error_code,
            detail=str(e)
        )
        raise HTTPException(
            status_code=400,
            detail=str(e)
        )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )


@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
