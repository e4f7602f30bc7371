"""Standard Webhooks signature verification for Polar deliveries.

Polar signs webhooks with the Standard Webhooks scheme using the raw secret
text as key material; the library expects it base64-encoded, the same
conversion ``polar_sdk.webhooks.validate_event`` performs.
"""

import base64
import logging
from collections.abc import Mapping

from standardwebhooks.webhooks import Webhook, WebhookVerificationError

from app.config import settings

logger = logging.getLogger(__name__)

__all__ = ["WebhookVerificationError", "verify_polar_signature"]


def verify_polar_signature(body: bytes, headers: Mapping[str, str], secret: str | None = None) -> None:
    """Verify the ``webhook-*`` headers against the raw body.

    Does nothing when no secret is configured.

    Raises:
        WebhookVerificationError: If the signature, timestamp or headers are invalid.
    """
    secret = settings.polar_webhook_secret if secret is None else secret
    if not secret:
        logger.warning("POLAR_WEBHOOK_SECRET not set; accepting unsigned webhook")
        return
    encoded = base64.b64encode(secret.encode("utf-8")).decode("ascii")
    Webhook(encoded).verify(body, {k.lower(): v for k, v in headers.items()})
