"""
Partner notifier: pushes a newly minted tenant API token to the partner system.

Delivery is best-effort. Missing configuration, non-2xx responses, timeouts and
transport errors are logged and swallowed; nothing is retried.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from urllib.parse import quote

import httpx
import structlog

from docsign_federation.core.config import Settings

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 5.0


def sign_payload(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def encode_payload(business_id: str, api_token: str) -> bytes:
    return json.dumps(
        {"businessId": business_id, "apiToken": api_token},
        separators=(",", ":"),
    ).encode()


class PartnerNotifier:

    def __init__(
        self,
        base_url: str,
        secret: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        path_template: str = "/store-api-key/{business_id}",
        signature_header: str = "x-signature",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._timeout = timeout
        self._path_template = path_template
        self._signature_header = signature_header
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "PartnerNotifier":
        return cls(
            settings.partner_webhook_url,
            settings.partner_webhook_secret,
            timeout=settings.partner_webhook_timeout_seconds,
            path_template=settings.partner_webhook_path,
            signature_header=settings.partner_webhook_signature_header,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._secret)

    def url_for(self, business_id: str) -> str:
        path = self._path_template.format(business_id=quote(business_id, safe=""))
        return self._base_url + path

    async def notify(self, business_id: str, api_token: str) -> bool:
        """Deliver the token. Returns True only on a 2xx response."""
        if not self.configured:
            log.warning("webhook.skipped", reason="not_configured", business_id=business_id)
            return False

        body = encode_payload(business_id, api_token)
        headers = {
            "Content-Type": "application/json",
            self._signature_header: sign_payload(self._secret, body),
        }

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post(self.url_for(business_id), content=body, headers=headers)
        except httpx.TimeoutException:
            log.error("webhook.timeout", business_id=business_id, timeout=self._timeout)
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.error("webhook.unreachable", business_id=business_id, error=type(exc).__name__)
            return False

        if not resp.is_success:
            log.warning("webhook.failed", status=resp.status_code, business_id=business_id)
            return False

        log.info("webhook.delivered", business_id=business_id)
        return True
