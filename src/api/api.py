import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Annotated, AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from api.dependencies import get_engine
from api.schemas import (
    CheckoutRequest,
    FeeIssueResponse,
    FeeRequest,
    RateResponse,
    TaxRequest,
    TransferRequest,
)
from domain.checkout import PricedOrder
from domain.errors import ConfigurationUnavailableError, InvalidAmountError
from domain.fees import FeeCalculationResult, StoreTransfer
from domain.tax import TaxCalculationResult
from services.engine import SettlementEngine, build_default_engine

logger = logging.getLogger(__name__)

EngineDep = Annotated[SettlementEngine, Depends(get_engine)]


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    if getattr(fastapi_app.state, "engine", None) is not None:
        yield
        return

    fastapi_app.state.engine = build_default_engine()
    try:
        yield
    finally:
        fastapi_app.state.engine.close()
        fastapi_app.state.engine = None


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start_time = perf_counter()
    response = await call_next(request)
    process_time = perf_counter() - start_time
    logger.info("Request time: %s %s: %.4fs", request.method, request.url.path, process_time)
    return response


@app.exception_handler(InvalidAmountError)
async def invalid_amount_handler(request: Request, exc: InvalidAmountError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(ConfigurationUnavailableError)
async def configuration_unavailable_handler(request: Request, exc: ConfigurationUnavailableError) -> JSONResponse:
    logger.error("Configuration unavailable for %s: %s", request.url.path, exc.cause)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.post("/taxes/calculate")
def calculate_taxes(body: TaxRequest, engine: EngineDep) -> TaxCalculationResult:
    return engine.calculate_taxes(body.items, body.address)


@app.get("/taxes/estimated-rate")
def estimated_tax_rate(engine: EngineDep, state: str | None = None) -> RateResponse:
    return RateResponse(rate=engine.estimated_tax_rate(state))


@app.post("/fees/calculate")
def calculate_fees(body: FeeRequest, engine: EngineDep) -> FeeCalculationResult:
    return engine.calculate_fees(body.order_amount, body.state_code)


@app.get("/fees/commission-rate")
def commission_rate(engine: EngineDep, state: str | None = None) -> RateResponse:
    return RateResponse(rate=engine.marketplace_commission_rate(state))


@app.post("/settlements/transfer")
def store_transfer(body: TransferRequest, engine: EngineDep) -> StoreTransfer:
    return engine.calculate_store_transfer_amount(body.store_gross_total, body.state_code)


@app.post("/checkout/price")
def price_checkout(body: CheckoutRequest, engine: EngineDep) -> PricedOrder:
    return engine.price_order(body.items_by_store, body.address, body.delivery_settings)


@app.post("/config/invalidate", status_code=204)
def invalidate_config_cache(engine: EngineDep) -> None:
    engine.invalidate_cache()


@app.get("/config/fee-issues")
def fee_issues(engine: EngineDep) -> list[FeeIssueResponse]:
    return [
        FeeIssueResponse(fee_id=issue.fee_id, fee_type=issue.fee_type, code=issue.code.value, message=issue.message)
        for issue in engine.validate_fees()
    ]
