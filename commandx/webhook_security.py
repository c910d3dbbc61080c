"""
Webhook Security

Signature verification for inbound Twilio webhooks.

Twilio signs each request with HMAC-SHA1 keyed by the account auth token over
the full request URL followed by every POST parameter (sorted by name, name
and value concatenated), base64 encoded, sent in `X-Twilio-Signature`.
"""

import base64
import hashlib
import hmac
import logging
from typing import Mapping, Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_twilio_signature(
    request: Request,
    params: Mapping[str, str],
    auth_token: str,
    webhook_url: Optional[str] = None,
    raise_on_failure: bool = True,
) -> bool:
    """
    Verify a Twilio webhook.

    `webhook_url` should be the public URL configured in the Twilio console;
    behind a proxy `request.url` is usually not what Twilio signed.
    """
    signature = request.headers.get("X-Twilio-Signature", "")
    if not signature:
        logger.warning("🚫 Twilio webhook missing signature header")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Missing webhook signature")
        return False

    url = webhook_url or str(request.url)
    expected = compute_twilio_signature(auth_token, url, params)

    if not constant_time_compare(expected, signature):
        logger.warning("🚫 Twilio webhook signature mismatch")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        return False

    logger.debug("✅ Twilio webhook signature verified")
    return True
