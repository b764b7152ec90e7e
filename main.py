"""
FastAPI Application for the Returns Settlement service.

Exposes fare quotes, driver completion, the gift-card delivery leg and
admin refund follow-up over the settlement workflow.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from core.domain import (
    ConflictError,
    InvalidRequestError,
    NotAuthorizedError,
    NotFoundError,
)
from use_cases.returns import build_workflow
from use_cases.returns.schemas import (
    CashRefundReview,
    CompleteOrderRequest,
    CompletionResponse,
    FareBreakdownResponse,
    FareQuoteRequest,
    GiftCardDeliveryResponse,
    GiftCardHandoffRequest,
    RefundResponse,
)
from use_cases.returns.workflow import SettlementWorkflow

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce Azure SDK logging verbosity
logging.getLogger("azure.cosmos").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)

# Global instance
workflow: Optional[SettlementWorkflow] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    global workflow

    logger.info("Starting Returns Settlement service...")
    workflow = build_workflow(settings)
    logger.info(
        f"Settlement workflow ready (store: {settings.order_store}, "
        f"pricing: {workflow.config.version})"
    )

    yield

    logger.info("Shutting down...")


def get_workflow() -> SettlementWorkflow:
    if workflow is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return workflow


# Create FastAPI app
app = FastAPI(
    title=settings.brand_name,
    description="Fare quotes and delivery settlement for return pickups",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS middleware for the booking site and driver app
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ERROR MAPPING
# =============================================================================

@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(
        status_code=422,
        content={"message": exc.message, "errors": [e.to_dict() for e in exc.errors]},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"message": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"message": exc.message})


@app.exception_handler(NotAuthorizedError)
async def not_authorized_handler(request: Request, exc: NotAuthorizedError):
    return JSONResponse(status_code=403, content={"message": exc.message})


# =============================================================================
# FARES
# =============================================================================

@app.post("/api/fares/quote", response_model=FareBreakdownResponse)
async def quote_fare(body: FareQuoteRequest, wf: SettlementWorkflow = Depends(get_workflow)):
    """Price a prospective return from its facts (booking form)."""
    fare = wf.quote(
        item_value=body.item_value,
        number_of_items=body.number_of_items,
        distance_miles=body.distance_miles,
        estimated_minutes=body.estimated_minutes,
        is_rush=body.is_rush,
        tip=body.tip,
    )
    return FareBreakdownResponse.from_domain(fare)


@app.get("/api/orders/{order_id}/fare", response_model=FareBreakdownResponse)
async def order_fare(order_id: str, wf: SettlementWorkflow = Depends(get_workflow)):
    """Price a stored order (driver job screen)."""
    return FareBreakdownResponse.from_domain(wf.quote_order(order_id))


# =============================================================================
# DRIVER COMPLETION
# =============================================================================

@app.post("/api/driver/orders/{order_id}/complete", response_model=CompletionResponse)
async def complete_order(
    order_id: str,
    body: CompleteOrderRequest,
    x_driver_id: Optional[str] = Header(default=None),
    wf: SettlementWorkflow = Depends(get_workflow),
):
    """
    Driver completes a return delivery.

    The gift-card delivery fee is always taken from pricing configuration;
    any fee in the body is ignored.
    """
    outcome = wf.complete_order(order_id, body.to_command(), driver_id=x_driver_id)
    return CompletionResponse.from_outcome(outcome)


@app.post(
    "/api/driver/orders/{order_id}/complete-gift-card-delivery",
    response_model=GiftCardDeliveryResponse,
)
async def complete_gift_card_delivery(
    order_id: str,
    body: GiftCardHandoffRequest,
    x_driver_id: Optional[str] = Header(default=None),
    wf: SettlementWorkflow = Depends(get_workflow),
):
    delivery = wf.complete_gift_card_delivery(
        order_id,
        photos=body.delivery_photos,
        notes=body.delivery_notes,
        signature=body.customer_signature,
        driver_id=x_driver_id,
    )
    return GiftCardDeliveryResponse.from_domain(delivery)


@app.get("/api/driver/gift-card-deliveries", response_model=List[GiftCardDeliveryResponse])
async def pending_gift_card_deliveries(
    x_driver_id: str = Header(...),
    wf: SettlementWorkflow = Depends(get_workflow),
):
    """Gift cards this driver still has to bring back to customers."""
    return [
        GiftCardDeliveryResponse.from_domain(d)
        for d in wf.pending_gift_card_deliveries(x_driver_id)
    ]


# =============================================================================
# REFUNDS
# =============================================================================

@app.get("/api/orders/{order_id}/refunds", response_model=List[RefundResponse])
async def order_refunds(order_id: str, wf: SettlementWorkflow = Depends(get_workflow)):
    return [RefundResponse.from_domain(r) for r in wf.refunds_for_order(order_id)]


@app.post("/api/admin/orders/{order_id}/retry-refund", response_model=RefundResponse)
async def retry_refund(order_id: str, wf: SettlementWorkflow = Depends(get_workflow)):
    return RefundResponse.from_domain(wf.retry_refund(order_id))


@app.post("/api/admin/approve-cash-refund/{order_id}", response_model=RefundResponse)
async def approve_cash_refund(
    order_id: str,
    body: CashRefundReview,
    wf: SettlementWorkflow = Depends(get_workflow),
):
    refund = wf.review_cash_refund(order_id, body.approved, body.admin_notes)
    return RefundResponse.from_domain(refund)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy" if workflow is not None else "starting",
        "version": "1.0.0",
        "order_store": settings.order_store,
        "pricing_version": workflow.config.version if workflow else None,
        "stripe_configured": bool(settings.stripe_secret_key),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
