"""
Balance Ledger API Application Factory
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..config import get_config
from ..errors import ErrorCode, LedgerError, StorageError
from ..logging_config import setup_logging, get_logger
from .accounts import router as accounts_router
from .transactions import router as transactions_router


ERROR_STATUS = {
    ErrorCode.OWNER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ACCOUNT_ALREADY_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.MAX_ACCOUNTS_PER_OWNER_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.ACCOUNT_BALANCE_NOT_EMPTY: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSACTION_NOT_CANCELLABLE: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSACTION_ALREADY_CANCELLED: status.HTTP_409_CONFLICT,
}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    logger = get_logger("ledger.api")

    app = FastAPI(
        title="Balance Ledger API",
        description="Account balance use and cancel with an append-only transaction ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(accounts_router, tags=["Accounts"])
    app.include_router(transactions_router, prefix="/transaction", tags=["Transactions"])

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.error_code, status.HTTP_400_BAD_REQUEST),
            content={"error_code": exc.error_code.name, "error_message": exc.error_message}
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error_code": "STORAGE_FAILURE", "error_message": "Storage is unavailable"}
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "balance_ledger_api",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "balance_ledger.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
