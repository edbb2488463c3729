"""
SLA Controllers (API Routes)
=============================

Manual trigger for the breach sweep. The same sweep runs on the scheduler.
"""

from fastapi import APIRouter, Depends, Request

from src.access.domain import AccessGuard, Actor, Capability
from src.access.interfaces import get_current_actor
from src.shared.api.schemas import success_response
from src.shared.infrastructure.logging import get_logger
from src.sla.application import SLABreachSweeper, SweepResponse

logger = get_logger(__name__)
sla_router = APIRouter(prefix="/sla", tags=["SLA"])


def get_sweeper(request: Request) -> SLABreachSweeper:
    """The process-wide sweeper built at startup."""
    return request.app.state.sweeper


@sla_router.post(
    "/sweep",
    summary="Run an SLA breach sweep now",
    description="""
    Scans open tickets past their SLA due time that were never notified,
    escalates each breach to the ticket owner and records it once.

    Safe to call repeatedly: a ticket is only ever counted by one sweep.
    """
)
async def run_sweep(
    actor: Actor = Depends(get_current_actor),
    sweeper: SLABreachSweeper = Depends(get_sweeper)
):
    AccessGuard.require(actor, Capability.RUN_SLA_SWEEP)

    processed = await sweeper.run_sla_breach_sweep()
    logger.info("Manual SLA sweep", extra={"actor_id": str(actor.id), "processed": processed})

    return success_response(SweepResponse(processed=processed), "SLA sweep completed")
