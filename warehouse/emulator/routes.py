"""verifyReceipt endpoints and control API for the receipt emulator.

Implements:
- POST /sandbox/verifyReceipt - Validate against the sandbox environment
- POST /production/verifyReceipt - Validate against the production environment
- POST /emulator/statuses - Force statuses for the next responses
- POST /emulator/reset - Reset emulator state
"""

from typing import Any

from fastapi import APIRouter, Request

from warehouse.emulator.receipt_emulator import ReceiptEmulator
from warehouse.logging_config import get_logger
from warehouse.models import (
    ForceStatusesRequest,
    ForceStatusesResponse,
    ResetResponse,
    VerifyReceiptResponse,
)

logger = get_logger(__name__)
router = APIRouter(tags=["verifyReceipt"])
control_router = APIRouter(tags=["Control API"], prefix="/emulator")


def _emulator(request: Request) -> ReceiptEmulator:
    return request.app.state.receipt_emulator


async def _read_body(request: Request) -> Any:
    """Decode the JSON body; malformed JSON is answered with status 21000."""
    try:
        return await request.json()
    except ValueError:
        # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors
        return None


@router.post(
    "/sandbox/verifyReceipt",
    response_model=VerifyReceiptResponse,
    response_model_exclude_none=True,
    summary="Verify receipt (sandbox)",
)
async def verify_receipt_sandbox(request: Request) -> VerifyReceiptResponse:
    return _emulator(request).verify(await _read_body(request), environment="sandbox")


@router.post(
    "/production/verifyReceipt",
    response_model=VerifyReceiptResponse,
    response_model_exclude_none=True,
    summary="Verify receipt (production)",
)
async def verify_receipt_production(request: Request) -> VerifyReceiptResponse:
    return _emulator(request).verify(await _read_body(request), environment="production")


@control_router.post(
    "/statuses",
    response_model=ForceStatusesResponse,
    summary="Force verifyReceipt statuses",
)
async def force_statuses(body: ForceStatusesRequest, request: Request) -> ForceStatusesResponse:
    """Queue statuses returned by the next verifyReceipt calls, in order.

    Useful for exercising error handling (e.g. 21005 server unavailable).
    """
    pending = _emulator(request).force_statuses(body.statuses)
    logger.info("statuses_forced", statuses=body.statuses, pending=len(pending))
    return ForceStatusesResponse(
        pending_statuses=pending,
        message=f"{len(body.statuses)} status(es) queued",
    )


@control_router.post("/reset", response_model=ResetResponse, summary="Reset emulator state")
async def reset(request: Request) -> ResetResponse:
    _emulator(request).reset()
    logger.info("emulator_reset")
    return ResetResponse(message="Emulator state reset")
