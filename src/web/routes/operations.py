"""In-flight operation control."""

import structlog
from fastapi import APIRouter, Depends

from intents import Steward
from web.deps import get_steward
from web.models import AbortResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/operations", tags=["operations"])


@router.post("/abort", response_model=AbortResponse)
async def abort_operations(steward: Steward = Depends(get_steward)):
    cancelled = steward.stop()
    logger.info("web.abort", cancelled=cancelled)
    return AbortResponse(cancelled=cancelled)
