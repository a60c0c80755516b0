"""
Call gatekeeper.

Answers Vapi's assistant-request at call setup. Known callers (exact match in
the contact allowlist) are silently transferred; everyone else gets the
screening assistant. The lookup runs under a time budget and any failure
falls back to screening, so call setup is never blocked on the database.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ..errors import StoreError
from ..intake.extractor import CALLER_ID_PATHS, first_text_at
from ..intake.schema import Contact
from ..security import verify_vapi_secret
from ..storage.call_store import CallStore
from ..utils.config import Settings, get_settings
from ..utils.phone import normalize_phone_number
from .prompts import get_screening_prompt

logger = logging.getLogger(__name__)

ASSISTANT_REQUEST = "assistant-request"


class RoutingAction(str, Enum):
    """What the gatekeeper tells the telephony layer to do."""
    TRANSFER = "transfer"
    SCREEN = "screen"


@dataclass
class GatekeeperDecision:
    """Routing directive for one incoming call."""
    action: RoutingAction
    response: dict[str, Any] = field(default_factory=dict)
    reason: str = ""
    caller_phone: Optional[str] = None
    contact: Optional[Contact] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "action": self.action.value,
            "reason": self.reason,
            "caller_phone": self.caller_phone,
            "contact": self.contact.model_dump() if self.contact else None,
            "response": self.response,
        }


def is_assistant_request(payload: Any) -> bool:
    """True unless the payload names a different Vapi message type."""
    if not isinstance(payload, dict):
        return True
    message = payload.get("message")
    message_type = message.get("type") if isinstance(message, dict) else None
    return message_type in (None, ASSISTANT_REQUEST)


class CallGatekeeper:
    """
    Route incoming calls: transfer known contacts, screen everyone else.

    Stateless; safe to share between requests.
    """

    def __init__(self, store: CallStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def authenticate(self, headers: Mapping[str, str]) -> None:
        """
        Raises:
            AuthError: unless x-vapi-secret or a Bearer token carries the secret
        """
        verify_vapi_secret(headers, self.settings.vapi_secret, allow_bearer=True)

    async def decide(self, payload: Any, headers: Mapping[str, str]) -> GatekeeperDecision:
        """
        Decide how to route a call.

        Raises:
            AuthError: on a missing or wrong credential (no directive is issued)
        """
        self.authenticate(headers)

        raw_phone = first_text_at(payload, CALLER_ID_PATHS) if isinstance(payload, dict) else None
        if not raw_phone:
            return self.screen("Unknown caller (no phone number)")

        phone = normalize_phone_number(raw_phone, self.settings.default_country_code)
        if not phone:
            return self.screen(f"Invalid phone number: {raw_phone}")

        logger.info(f"Checking allowlist for {phone}")
        try:
            contact = await asyncio.wait_for(
                asyncio.to_thread(self.store.find_contact_by_phone, phone),
                timeout=self.settings.gatekeeper_lookup_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Allowlist lookup exceeded {self.settings.gatekeeper_lookup_timeout_seconds}s, screening"
            )
            return self.screen("Allowlist lookup timed out", caller_phone=phone)
        except StoreError as e:
            logger.error(f"Allowlist lookup failed, screening: {e}")
            return self.screen("Allowlist unavailable", caller_phone=phone)

        if contact:
            logger.info(f"Known contact: {contact.display_name or 'Unnamed'} ({phone}), transferring")
            return self.transfer(contact, phone)

        logger.info(f"Unknown contact: {phone}, engaging screener")
        return self.screen("Caller not in allowlist", caller_phone=phone)

    def transfer(self, contact: Contact, caller_phone: str) -> GatekeeperDecision:
        """Silent transfer to the configured number. An empty message means no announcement."""
        response = {
            "transferPlan": {
                "destinations": [
                    {
                        "type": "number",
                        "number": self.settings.transfer_phone_number,
                        "message": "",
                    }
                ]
            }
        }
        return GatekeeperDecision(
            action=RoutingAction.TRANSFER,
            response=response,
            reason="Known contact",
            caller_phone=caller_phone,
            contact=contact,
        )

    def screen(self, reason: str, caller_phone: Optional[str] = None) -> GatekeeperDecision:
        """Inline configuration for the screening assistant."""
        settings = self.settings
        response = {
            "assistant": {
                "firstMessage": settings.screen_first_message,
                "model": {
                    "provider": settings.screen_model_provider,
                    "model": settings.screen_model,
                    "messages": [
                        {
                            "role": "system",
                            "content": get_screening_prompt(settings.protected_party_name),
                        }
                    ],
                    "temperature": settings.screen_temperature,
                    "maxTokens": settings.screen_max_tokens,
                },
                "voice": {
                    "provider": settings.screen_voice_provider,
                    "voiceId": settings.screen_voice_id,
                },
            }
        }
        logger.info(f"Screening call: {reason}")
        return GatekeeperDecision(
            action=RoutingAction.SCREEN,
            response=response,
            reason=reason,
            caller_phone=caller_phone,
        )
