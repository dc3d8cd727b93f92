"""HMAC-SHA256 webhook signatures."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# Checked in order; the first non-empty value wins.
SIGNATURE_HEADERS = (
    "X-Hub-Signature-256",
    "X-Gitlab-Token",
    "X-Jenkins-Secret",
    "X-Azure-Secret",
    "X-Webhook-Secret",
)

SIGNATURE_PREFIX = "sha256="


def extract_signature(headers: Mapping[str, str]) -> Optional[str]:
    """Return the first non-empty vendor signature header, if any."""
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in SIGNATURE_HEADERS:
        value = lowered.get(name.lower())
        if value:
            return value
    return None


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def sign_payload(body: bytes, secret: str) -> str:
    return f"{SIGNATURE_PREFIX}{compute_signature(body, secret)}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of a (optionally sha256=-prefixed) hex signature."""
    if not signature or not secret:
        return False
    supplied = signature[len(SIGNATURE_PREFIX):] if signature.startswith(SIGNATURE_PREFIX) else signature
    expected = compute_signature(body, secret)
    try:
        return hmac.compare_digest(expected.encode("ascii"), supplied.encode("ascii"))
    except UnicodeEncodeError:
        logger.debug("Rejecting non-ASCII webhook signature")
        return False
