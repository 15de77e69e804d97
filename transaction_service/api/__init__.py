"""
Transaction Service API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import ServiceConfig, get_config
from ..logging_config import setup_logging
from ..results import LedgerOperationError
from .accounts import router as accounts_router
from .dependencies import shutdown_transaction_system
from .errors import ERROR_RESPONSES, ledger_error_handler
from .payments import router as payments_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_transaction_system()


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    config = config or get_config()
    setup_logging(level=config.log_level, log_format=config.log_format, log_file=config.log_file)

    app = FastAPI(
        title="Transaction Service API",
        description="Accounts, deposits, withdrawals and transfers with non-negative balances",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerOperationError, ledger_error_handler)

    app.include_router(accounts_router, prefix="/v1/accounts", tags=["Accounts"],
                       responses=ERROR_RESPONSES)
    app.include_router(payments_router, prefix="/v1/payments", tags=["Payments"],
                       responses=ERROR_RESPONSES)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "transaction_service",
            "version": __version__
        }

    return app


app = create_app()
