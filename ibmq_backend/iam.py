"""IBM Cloud IAM token exchange."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from .config import DEFAULT_TIMEOUT, IBM_IAM_URL
from .exceptions import IBMQAuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IAMToken:
    access_token: str
    expires_at: float

    def is_expired(self, margin: float = 60.0) -> bool:
        return time.time() >= self.expires_at - margin


def fetch_iam_token(
    api_key: str,
    iam_url: str = IBM_IAM_URL,
    timeout: float = DEFAULT_TIMEOUT,
    http_client: httpx.Client | None = None,
) -> IAMToken:
    """Exchange an IBM Cloud API key for an IAM bearer token.

    Raises
    ------
    IBMQAuthenticationError
        If the key is blank, rejected, or the IAM service cannot be reached.
    """
    if not api_key or not api_key.strip():
        raise IBMQAuthenticationError("No IBM Cloud API key supplied")

    client = http_client or httpx.Client(timeout=timeout)
    try:
        resp = client.post(
            iam_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "grant_type": "urn:ibm:params:oauth:grant-type:apikey",
                "apikey": api_key,
            },
        )
    except httpx.HTTPError as exc:
        raise IBMQAuthenticationError(f"Could not reach IBM Cloud IAM at {iam_url}") from exc
    finally:
        if http_client is None:
            client.close()

    if resp.status_code in (400, 401):
        raise IBMQAuthenticationError("IBM IAM authentication failed; check the API key")
    if resp.status_code >= 400:
        raise IBMQAuthenticationError(f"IBM IAM token exchange failed with status {resp.status_code}")

    data = resp.json()
    token = data.get("access_token")
    if not token:
        raise IBMQAuthenticationError("IBM IAM response did not contain an access token")
    logger.info("Obtained IAM token valid for %ss", data.get("expires_in", 3600))
    return IAMToken(access_token=token, expires_at=time.time() + data.get("expires_in", 3600))
