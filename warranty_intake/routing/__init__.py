"""Call routing: the gatekeeper at call setup and claim creation at teardown."""

from .claim_workflow import (
    ClaimCreator,
    build_claim_description,
)
from .gatekeeper import (
    CallGatekeeper,
    GatekeeperDecision,
    RoutingAction,
    is_assistant_request,
)
from .prompts import get_screening_prompt

__all__ = [
    "CallGatekeeper",
    "ClaimCreator",
    "GatekeeperDecision",
    "RoutingAction",
    "build_claim_description",
    "get_screening_prompt",
    "is_assistant_request",
]
