"""
FastAPI application for warranty call intake.

Provides:
- Vapi call-setup webhook (gatekeeper: transfer known callers, screen the rest)
- Vapi end-of-call webhook (intake: call record, homeowner match, claim)
- Read-only monitoring endpoints for stored calls and claims
"""

# IMPORTANT: Configure logging FIRST, before any other imports
# This ensures verbose libraries don't spam debug logs
import logging

# Reduce noise from verbose libraries - set this BEFORE they're imported
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from ..errors import AuthError
from ..intake.ingestor import WebhookIngestor
from ..routing.gatekeeper import CallGatekeeper, is_assistant_request
from ..storage import CallStore, get_call_store
from ..utils.config import get_settings

settings = get_settings()

# Now configure logging properly
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

UNAUTHORIZED = {"error": "Unauthorized"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting warranty call intake server...")
    if not settings.vapi_secret:
        logger.warning("VAPI_SECRET is not set; every webhook will be rejected")
    logger.info(f"Transfer number: {settings.transfer_phone_number}")
    get_call_store()
    yield
    logger.info("Shutting down warranty call intake server...")


app = FastAPI(
    title="Warranty Call Intake",
    description="Call gatekeeping and end-of-call claim intake for Vapi voice calls",
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Dependencies
# =============================================================================


def get_store() -> CallStore:
    """Intake store for request handlers."""
    return get_call_store()


def get_gatekeeper(store: CallStore = Depends(get_store)) -> CallGatekeeper:
    """Gatekeeper bound to the intake store."""
    return CallGatekeeper(store, get_settings())


def get_ingestor(store: CallStore = Depends(get_store)) -> WebhookIngestor:
    """Intake pipeline bound to the intake store."""
    return WebhookIngestor.from_settings(store, get_settings())


def _request_id() -> str:
    return str(uuid.uuid4())[:8]


async def _json_body(request: Request):
    """Parsed JSON body, or None when the body is not JSON."""
    try:
        return await request.json()
    except ValueError:
        return None


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "service": "Warranty Call Intake",
        "status": "running",
    }


@app.get("/health")
async def health_check(store: CallStore = Depends(get_store)):
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "calls": store.count_calls(),
        "unverified_calls": store.count_calls(verified=False),
        "config": {
            "secret_configured": bool(settings.vapi_secret),
            "address_match_threshold": settings.address_match_threshold,
            "claim_dedup_window_hours": settings.claim_dedup_window_hours,
        },
    }


# =============================================================================
# Vapi Webhook Endpoints
# =============================================================================


@app.post("/vapi/gatekeeper")
async def vapi_gatekeeper(request: Request, gatekeeper: CallGatekeeper = Depends(get_gatekeeper)):
    """
    Vapi assistant-request webhook.

    Known callers get a silent transfer directive; everyone else gets the
    screening assistant. Any failure after authentication answers with the
    screening assistant so the call is never left without a directive.
    """
    request_id = _request_id()
    logger.info(f"[{request_id}] Gatekeeper webhook received")

    try:
        gatekeeper.authenticate(request.headers)
    except AuthError as e:
        logger.warning(f"[{request_id}] Unauthorized gatekeeper request: {e}")
        return JSONResponse(status_code=401, content=UNAUTHORIZED)

    payload = await _json_body(request)
    if payload is not None and not is_assistant_request(payload):
        logger.info(f"[{request_id}] Ignoring event type {payload['message'].get('type')}")
        return {"message": "Event ignored"}

    try:
        decision = await gatekeeper.decide(payload, request.headers)
    except AuthError:
        return JSONResponse(status_code=401, content=UNAUTHORIZED)
    except Exception as e:
        logger.exception(f"[{request_id}] ❌ Gatekeeper error, screening: {e}")
        decision = gatekeeper.screen("Gatekeeper error")

    logger.info(f"[{request_id}] Decision: {decision.action.value} ({decision.reason})")
    return decision.response


@app.post("/vapi/webhook")
async def vapi_webhook(request: Request, ingestor: WebhookIngestor = Depends(get_ingestor)):
    """
    Vapi end-of-call webhook.

    Always answers 200 {"success": true} once authenticated, whatever happened
    inside the pipeline. Vapi retries anything else.
    """
    request_id = _request_id()
    logger.info(f"[{request_id}] End-of-call webhook received")

    payload = await _json_body(request)
    try:
        result = await ingestor.ingest(payload, request.headers)
    except AuthError as e:
        logger.warning(f"[{request_id}] Unauthorized webhook request: {e}")
        return JSONResponse(status_code=401, content=UNAUTHORIZED)

    logger.info(f"[{request_id}] Intake result: {result.status} {result.external_call_id or ''}")
    return {"success": True}


# =============================================================================
# API Endpoints for Monitoring
# =============================================================================


@app.get("/calls")
async def list_calls(
    verified: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    store: CallStore = Depends(get_store),
):
    """List stored call records, newest first."""
    calls = store.list_calls(verified=verified, limit=limit)
    return {
        "calls": [call.model_dump(mode="json", exclude={"transcript"}) for call in calls],
        "total": store.count_calls(verified=verified),
    }


@app.get("/calls/{external_call_id}")
async def get_call(external_call_id: str, store: CallStore = Depends(get_store)):
    """Get one call record, with its claim if one was opened."""
    call = store.get_call(external_call_id)
    if call is None:
        return JSONResponse(
            status_code=404,
            content={"error": "Call not found"},
        )

    claim = store.get_claim(call.claim_id) if call.claim_id else None
    return {
        "call": call.model_dump(mode="json"),
        "claim": claim.model_dump(mode="json") if claim else None,
    }


@app.get("/homeowners/{homeowner_id}/claims")
async def list_homeowner_claims(homeowner_id: str, store: CallStore = Depends(get_store)):
    """Claims for one homeowner, by claim number."""
    homeowner = store.get_homeowner(homeowner_id)
    if homeowner is None:
        return JSONResponse(
            status_code=404,
            content={"error": "Homeowner not found"},
        )

    return {
        "homeowner": homeowner.model_dump(mode="json"),
        "claims": [claim.model_dump(mode="json") for claim in store.list_claims(homeowner_id)],
    }


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(
        "warranty_intake.voice.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
