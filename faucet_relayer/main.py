"""
Faucet relayer HTTP service.

Endpoints:
- GET /health: relay wallet status and balance
- POST /claim: send testnet funds to an address
"""

import sys
import time
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncGenerator, Callable, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from web3 import Web3

from . import __version__
from .config import Settings, get_settings
from .dispatcher import RelayDispatcher
from .errors import ConfigurationError, InvalidInputError, RelayError
from .health import HealthReporter
from .ledger import LedgerClient, Web3LedgerClient
from .models import ClaimRequest, ClaimResponse, ErrorResponse, HealthResponse
from .policy import ClaimPolicy, EligibilityGuard
from .store import ClaimLedger
from .wallet import RelayWallet

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


def format_ether(wei: int) -> str:
    """Format a wei amount as a plain decimal string in native units."""
    return format(Decimal(Web3.from_wei(wei, "ether")), "f")


def _error_response(exc: RelayError) -> JSONResponse:
    body = ErrorResponse(error=exc.error, details=exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


def create_app(
    settings: Optional[Settings] = None,
    ledger: Optional[LedgerClient] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build the relayer application.

    Args:
        settings: configuration; defaults to environment settings
        ledger: ledger client override (a Web3LedgerClient is built otherwise)
        clock: time source for cooldown bookkeeping
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Wire the relayer core. Refuses to start on incomplete configuration."""
        cfg = settings or get_settings()

        try:
            cfg.require_runtime()
            wallet = RelayWallet.from_private_key(cfg.private_key)
            policy = ClaimPolicy.from_settings(cfg)
            contract = cfg.resolve_contract_address()
        except ConfigurationError as e:
            logger.critical("startup_refused", error=str(e))
            raise

        client = ledger or Web3LedgerClient(
            rpc_url=cfg.evm_rpc_url or "",
            wallet=wallet,
            chain_id=cfg.chain_id,
            timeout=cfg.rpc_timeout_seconds,
        )

        app.state.dispatcher = RelayDispatcher(
            ledger=client,
            guard=EligibilityGuard(policy),
            claims=ClaimLedger(),
            clock=clock,
        )
        app.state.health_reporter = HealthReporter(
            ledger=client,
            relayer_address=wallet.address,
            contract=contract,
        )

        logger.info(
            "relayer_started",
            version=__version__,
            relayer=wallet.address,
            evm_rpc=cfg.evm_rpc_url,
            policy=policy.mode.value,
            amount_wei=policy.amount_wei,
            contract=contract,
        )

        yield

        if ledger is None:
            await client.aclose()
        logger.info("relayer_stopped")

    app = FastAPI(
        title="Faucet Relayer",
        description="Testnet faucet: sends small transfers from a single relay wallet",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=(settings or get_settings()).allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(InvalidInputError())

    _register_routes(app)
    return app


def get_dispatcher(request: Request) -> RelayDispatcher:
    return request.app.state.dispatcher


def get_health_reporter(request: Request) -> HealthReporter:
    return request.app.state.health_reporter


def _register_routes(app: FastAPI) -> None:

    @app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    async def health_check(
        response: Response,
        reporter: HealthReporter = Depends(get_health_reporter),
    ) -> HealthResponse:
        """
        Report relay wallet status.

        Returns 503 with status "error" when the node cannot be reached.
        """
        report = await reporter.health()
        if not report.ok:
            response.status_code = 503

        return HealthResponse(
            status=report.status,
            contract=report.contract,
            relayer_address=report.relayer_address,
            relayer_balance=(
                format_ether(report.relayer_balance_wei)
                if report.relayer_balance_wei is not None
                else None
            ),
            error=report.error,
        )

    @app.post(
        "/claim",
        response_model=ClaimResponse,
        responses={
            400: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def claim(
        request: ClaimRequest,
        dispatcher: RelayDispatcher = Depends(get_dispatcher),
    ) -> ClaimResponse:
        """
        Send testnet funds to an address.

        Denials and failures are returned as {"error", "details"} bodies.
        """
        receipt = await dispatcher.claim(request.address)
        return ClaimResponse(success=True, tx_hash=receipt.tx_hash)


app = create_app()


# ============================================================================
# Entry Point
# ============================================================================


def run() -> None:
    """Run the relayer server. Exits if required configuration is missing."""
    settings = get_settings()
    try:
        settings.require_runtime()
        RelayWallet.from_private_key(settings.private_key)
    except ConfigurationError as e:
        logger.critical("startup_refused", error=str(e))
        sys.exit(1)

    uvicorn.run(
        "faucet_relayer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
