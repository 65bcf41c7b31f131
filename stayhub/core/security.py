"""Payme webhook authentication."""

import base64
import binascii
import logging
from typing import Any

from stayhub.config import Settings
from stayhub.core.exceptions import PaymeError, PaymeTransactionError

logger = logging.getLogger(__name__)


def decode_basic_credentials(authorization: str | None) -> str | None:
    """Decode the payload of a ``Basic <base64>`` header, or None if malformed."""
    if not authorization:
        return None

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "basic" or not parts[1].strip():
        return None

    try:
        return base64.b64decode(parts[1].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def verify_payme_authorization(
    authorization: str | None,
    settings: Settings,
    request_id: Any = None,
) -> None:
    """Ensure the request carries the merchant key configured for this environment.

    Raises:
        PaymeTransactionError: InvalidAuthorization when the header is missing,
            cannot be decoded, or lacks the expected key
    """
    expected_key = settings.active_payme_key
    if not expected_key:
        logger.error("Payme merchant key is not configured, rejecting webhook")
        raise PaymeTransactionError(PaymeError.INVALID_AUTHORIZATION, request_id)

    credentials = decode_basic_credentials(authorization)
    if credentials is None:
        logger.warning("Payme webhook rejected: missing or undecodable authorization")
        raise PaymeTransactionError(PaymeError.INVALID_AUTHORIZATION, request_id)

    if expected_key not in credentials:
        logger.warning("Payme webhook rejected: merchant key mismatch")
        raise PaymeTransactionError(PaymeError.INVALID_AUTHORIZATION, request_id)


def build_basic_credentials(login: str, key: str) -> str:
    """Build the header value Payme sends, used by scripts and tests."""
    token = base64.b64encode(f"{login}:{key}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
