"""
Donation Service Main Application

FastAPI application for the donation and campaign funding ledger.
Port: 8260
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.config_manager import ConfigManager
from core.logger import setup_service_logger

from .factory import DonationServiceFactory
from .models import (
    Campaign,
    CampaignCreateRequest,
    CampaignDetailResponse,
    CampaignDonationSummary,
    CampaignListResponse,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    Donation,
    DonationChannel,
    DonationFilter,
    DonationListResponse,
    DonationStatus,
    DonationUpdateRequest,
    HealthResponse,
    LivenessResponse,
    OfflineDonationRequest,
    PaymentMode,
    PublicDonationFeed,
    ReadinessResponse,
    ReconciliationReport,
)
from .routes_registry import SERVICE_METADATA, get_routes_summary
from .protocols import (
    CampaignNotAcceptingFundsError,
    CampaignNotFoundError,
    DonationNotFoundError,
    DonationStateConflictError,
    DonationValidationError,
    GatewayError,
    LedgerConsistencyError,
    PaymentVerificationError,
)

# Service configuration
SERVICE_NAME = "donation_service"
config_manager = ConfigManager(SERVICE_NAME)
service_config = config_manager.get_service_config()
SERVICE_PORT = service_config.service_port
SERVICE_VERSION = SERVICE_METADATA["version"]

app_logger = setup_service_logger(SERVICE_NAME, level=service_config.log_level)
logger = logging.getLogger(__name__)

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[DonationServiceFactory] = None


async def run_reconciliation_loop(interval_seconds: int):
    """Run the ledger reconciler every interval_seconds until cancelled"""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            if factory:
                await factory.reconciler.run_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in reconciliation loop: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")
    config_manager.print_config_summary(show_secrets=False)
    logger.info(f"Serving {get_routes_summary()['route_count']} routes under /api/v1")

    # Initialize factory
    factory = DonationServiceFactory(config_manager)
    await factory.initialize()

    reconcile_task = None
    interval = get_settings().reconcile.interval_seconds
    if interval > 0:
        reconcile_task = asyncio.create_task(run_reconciliation_loop(interval))
        logger.info(f"Ledger reconciliation scheduled every {interval}s")

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    if reconcile_task:
        reconcile_task.cancel()
        try:
            await reconcile_task
        except asyncio.CancelledError:
            pass
    await factory.close()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Donation Service",
    description="Donation and campaign funding ledger with online and offline donations",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(DonationValidationError)
async def validation_error_handler(request: Request, exc: DonationValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(CampaignNotFoundError)
async def campaign_not_found_handler(request: Request, exc: CampaignNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(DonationNotFoundError)
async def donation_not_found_handler(request: Request, exc: DonationNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(CampaignNotAcceptingFundsError)
async def not_accepting_funds_handler(request: Request, exc: CampaignNotAcceptingFundsError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(DonationStateConflictError)
async def state_conflict_handler(request: Request, exc: DonationStateConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(PaymentVerificationError)
async def payment_verification_handler(request: Request, exc: PaymentVerificationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(LedgerConsistencyError)
async def ledger_consistency_handler(request: Request, exc: LedgerConsistencyError):
    # Details were logged at CRITICAL by the service
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Donation could not be recorded. No changes were saved."},
    )


# ====================
# Dependencies
# ====================


def get_service():
    """Get donation service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.service


def get_reconciler():
    """Get ledger reconciler from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.reconciler


def get_auth_context(request: Request) -> dict:
    """Extract auth context from request headers"""
    return {
        "user_id": request.headers.get("X-User-ID"),
        "role": (request.headers.get("X-User-Role") or "user").lower(),
    }


def require_user(auth: dict = Depends(get_auth_context)) -> dict:
    if not auth["user_id"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return auth


def require_admin(auth: dict = Depends(require_user)) -> dict:
    if auth["role"] not in get_settings().admin_roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return auth


# ====================
# Health Endpoints
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_health = await factory.db.health_check()
            dependencies["postgres"] = "healthy" if db_health and db_health.get("healthy") else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_health = await factory.db.health_check()
            checks["database"] = bool(db_health and db_health.get("healthy"))
            details["database"] = "Connected" if checks["database"] else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        if factory.nats_client:
            checks["nats"] = factory.nats_client.is_connected
            details["nats"] = "Connected" if checks["nats"] else "Disconnected"
        else:
            checks["nats"] = True  # Optional
            details["nats"] = "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])
    return ReadinessResponse(ready=ready, checks=checks, details=details)


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(alive=True, uptime_seconds=time.time() - startup_time)


# ====================
# Online Donation Endpoints
# ====================


@app.post(
    "/api/v1/donations/gateway/create-order",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Online Donations"],
)
async def create_gateway_order(request: CreateOrderRequest, service=Depends(get_service)):
    """Open a gateway order and a Pending donation for it"""
    return await service.initiate_online_donation(request)


@app.post(
    "/api/v1/donations/gateway/verify",
    response_model=ConfirmPaymentResponse,
    tags=["Online Donations"],
)
async def verify_gateway_payment(request: ConfirmPaymentRequest, service=Depends(get_service)):
    """Verify the checkout signature and complete the donation (idempotent)"""
    return await service.confirm_online_payment(request)


# ====================
# Donation Endpoints
# ====================


@app.post(
    "/api/v1/donations/offline",
    response_model=Donation,
    status_code=status.HTTP_201_CREATED,
    tags=["Donations"],
)
async def record_offline_donation(
    request: OfflineDonationRequest,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    """Record a cash, bank, UPI, cheque or in-kind donation"""
    return await service.record_offline_donation(request, auth["user_id"])


@app.post(
    "/api/v1/donations/reconcile",
    response_model=ReconciliationReport,
    tags=["Donations"],
)
async def reconcile_ledger(reconciler=Depends(get_reconciler), auth: dict = Depends(require_admin)):
    """Run one ledger reconciliation pass"""
    logger.info(f"Manual reconciliation requested by {auth['user_id']}")
    return await reconciler.run_once()


@app.get(
    "/api/v1/donations",
    response_model=DonationListResponse,
    tags=["Donations"],
)
async def list_donations(
    campaign_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    status_filter: Optional[DonationStatus] = Query(None, alias="status"),
    channel: Optional[DonationChannel] = Query(None),
    payment_mode: Optional[PaymentMode] = Query(None),
    search: Optional[str] = Query(None, description="Donor name, email or receipt number"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
    auth: dict = Depends(require_user),
):
    """List donations with filters"""
    filters = DonationFilter(
        campaign_id=campaign_id,
        project_id=project_id,
        status=status_filter,
        channel=channel,
        payment_mode=payment_mode,
        search=search,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    donations = await service.list_donations(filters)
    return DonationListResponse(donations=donations, count=len(donations), limit=limit, offset=offset)


@app.get(
    "/api/v1/donations/campaign/{campaign_id}/summary",
    response_model=CampaignDonationSummary,
    tags=["Reports"],
)
async def get_campaign_summary(
    campaign_id: str,
    service=Depends(get_service),
    auth: dict = Depends(require_user),
):
    """Completed totals per channel, pending total and unique donors"""
    return await service.get_campaign_summary(campaign_id)


@app.get(
    "/api/v1/donations/campaign/{campaign_id}/recent",
    response_model=PublicDonationFeed,
    tags=["Reports"],
)
async def get_recent_donations(
    campaign_id: str,
    limit: int = Query(10, ge=1, le=50),
    service=Depends(get_service),
):
    """Public feed of recent donations with masked donor names"""
    donations = await service.get_recent_public_donations(campaign_id, limit)
    return PublicDonationFeed(campaign_id=campaign_id, donations=donations)


@app.get(
    "/api/v1/donations/{donation_id}",
    response_model=Donation,
    tags=["Donations"],
)
async def get_donation(
    donation_id: str,
    service=Depends(get_service),
    auth: dict = Depends(require_user),
):
    return await service.get_donation(donation_id)


@app.put(
    "/api/v1/donations/{donation_id}",
    response_model=Donation,
    tags=["Donations"],
)
async def update_donation(
    donation_id: str,
    request: DonationUpdateRequest,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    """Update donor and reference details. Amount, status and channel cannot change."""
    return await service.update_donation(donation_id, request, auth["user_id"])


@app.delete(
    "/api/v1/donations/{donation_id}",
    tags=["Donations"],
)
async def delete_donation(
    donation_id: str,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    """Delete a donation, reversing its campaign credit if it was completed"""
    await service.delete_donation(donation_id, auth["user_id"])
    return {"success": True, "message": "Donation deleted successfully"}


# ====================
# Campaign Endpoints
# ====================


@app.post(
    "/api/v1/campaigns",
    response_model=Campaign,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def create_campaign(
    request: CampaignCreateRequest,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    return await service.create_campaign(request, auth["user_id"])


@app.get(
    "/api/v1/campaigns",
    response_model=CampaignListResponse,
    tags=["Campaigns"],
)
async def list_campaigns(
    project_id: Optional[str] = Query(None),
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    type_filter: Optional[CampaignType] = Query(None, alias="type"),
    search: Optional[str] = Query(None, description="Search by name or code"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
    auth: dict = Depends(require_user),
):
    campaigns = await service.list_campaigns(
        project_id=project_id,
        status=status_filter,
        campaign_type=type_filter,
        search=search,
        limit=limit,
        offset=offset,
    )
    return CampaignListResponse(campaigns=campaigns, count=len(campaigns), limit=limit, offset=offset)


@app.get(
    "/api/v1/campaigns/public",
    response_model=CampaignListResponse,
    tags=["Campaigns"],
)
async def list_public_campaigns(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
):
    """Active public campaigns"""
    campaigns = await service.list_public_campaigns(limit=limit, offset=offset)
    return CampaignListResponse(campaigns=campaigns, count=len(campaigns), limit=limit, offset=offset)


@app.get(
    "/api/v1/campaigns/code/{campaign_code}",
    response_model=Campaign,
    tags=["Campaigns"],
)
async def get_campaign_by_code(campaign_code: str, service=Depends(get_service)):
    return await service.get_campaign_by_code(campaign_code)


@app.get(
    "/api/v1/campaigns/{campaign_id}",
    response_model=CampaignDetailResponse,
    tags=["Campaigns"],
)
async def get_campaign(
    campaign_id: str,
    service=Depends(get_service),
    auth: dict = Depends(require_user),
):
    """Campaign with donation statistics"""
    return await service.get_campaign(campaign_id)


@app.put(
    "/api/v1/campaigns/{campaign_id}",
    response_model=Campaign,
    tags=["Campaigns"],
)
async def update_campaign(
    campaign_id: str,
    request: CampaignUpdateRequest,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    return await service.update_campaign(campaign_id, request, auth["user_id"])


@app.delete(
    "/api/v1/campaigns/{campaign_id}",
    tags=["Campaigns"],
)
async def delete_campaign(
    campaign_id: str,
    service=Depends(get_service),
    auth: dict = Depends(require_admin),
):
    await service.delete_campaign(campaign_id, auth["user_id"])
    return {"success": True, "message": "Campaign deleted successfully"}


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.donation_service.main:app",
        host=service_config.service_host,
        port=SERVICE_PORT,
        reload=service_config.debug,
        log_level=service_config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
