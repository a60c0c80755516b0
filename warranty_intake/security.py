"""Webhook authentication for Vapi callbacks."""

import hmac
import logging
import re
from typing import Mapping, Optional

from .errors import AuthError

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-vapi-secret"
_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def _lower_keys(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def presented_secret(headers: Mapping[str, str], allow_bearer: bool = False) -> Optional[str]:
    """
    Pull the credential out of request headers.

    The x-vapi-secret header wins; with allow_bearer, an
    "Authorization: Bearer <secret>" header is accepted as well.
    """
    lowered = _lower_keys(headers)
    secret = lowered.get(SECRET_HEADER)
    if secret:
        return secret.strip()

    if allow_bearer:
        match = _BEARER.match(lowered.get("authorization", "").strip())
        if match:
            logger.debug("Using Bearer token from Authorization header")
            return match.group(1).strip()
    return None


def verify_vapi_secret(
    headers: Mapping[str, str],
    expected_secret: Optional[str],
    allow_bearer: bool = False,
) -> None:
    """
    Check the request credential against the configured secret.

    Raises:
        AuthError: if no secret is configured, none was presented, or it differs
    """
    if not expected_secret:
        raise AuthError("VAPI_SECRET not configured")

    secret = presented_secret(headers, allow_bearer=allow_bearer)
    if not secret:
        raise AuthError("No Vapi secret in headers")

    if not hmac.compare_digest(secret.encode("utf-8"), expected_secret.encode("utf-8")):
        raise AuthError("Invalid Vapi secret")
