"""Per-backend mutable state: credential, job, batch and session registries.

Each collection carries its own lock so that registering a record is atomic.
Records are immutable once stored, so no cross-record transaction is needed.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Generic, TypeVar

from .exceptions import IBMQAuthenticationError
from .iam import IAMToken
from .types import BatchRecord, JobRecord, SessionRecord

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Credential keys accepted by authenticate(), in lookup order.
CREDENTIAL_KEYS = ("api_token", "token", "api_key", "bearer_token", "ibm_quantum_api_key")


class AuthState:
    """Current bearer credential and when it was set.

    When the credential came from an IBM Cloud API key, the key and the
    :class:`IAMToken` are kept and :meth:`current_token` exchanges the key
    again once the token is within a minute of expiry.
    """

    def __init__(
        self,
        token: str | None = None,
        exchange: Callable[[str], IAMToken] | None = None,
    ):
        self._lock = threading.Lock()
        self._token = token
        self._authenticated_at: float | None = time.time() if token else None
        self._exchange = exchange
        self._api_key: str | None = None
        self._iam_token: IAMToken | None = None

    @property
    def token(self) -> str | None:
        """Stored token, without any refresh."""
        with self._lock:
            return self._token

    def current_token(self) -> str | None:
        """Token to send now, exchanging the API key again if the IAM token expired."""
        with self._lock:
            api_key, iam_token = self._api_key, self._iam_token
        if api_key and iam_token is not None and self._exchange is not None and iam_token.is_expired():
            logger.info("IAM token expired; exchanging the API key again")
            self.set_api_key(api_key, self._exchange(api_key))
        return self.token

    @property
    def authenticated_at(self) -> float | None:
        with self._lock:
            return self._authenticated_at

    def require_token(self, operation: str) -> str:
        """Return the current token or raise before any dispatch is attempted."""
        token = self.current_token()
        if token is None or not token.strip():
            raise IBMQAuthenticationError(
                f"{operation} requires an API token; call authenticate() with one of "
                f"{list(CREDENTIAL_KEYS)} or set IBM_QUANTUM_TOKEN"
            )
        return token

    def set_token(self, token: str) -> float:
        """Store *token* and return the authentication timestamp."""
        with self._lock:
            self._token = token
            self._api_key = None
            self._iam_token = None
            self._authenticated_at = time.time()
            return self._authenticated_at

    def set_api_key(self, api_key: str, iam_token: IAMToken) -> float:
        """Store an exchanged IAM token along with the key it came from."""
        with self._lock:
            self._token = iam_token.access_token
            self._api_key = api_key
            self._iam_token = iam_token
            self._authenticated_at = time.time()
            return self._authenticated_at


class Registry(Generic[R]):
    """Thread-safe mapping from a handle to an immutable record."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, R] = {}

    def get(self, handle: str) -> R | None:
        with self._lock:
            return self._records.get(handle)

    def put(self, handle: str, record: R) -> None:
        with self._lock:
            self._records[handle] = record

    def pop(self, handle: str) -> R | None:
        with self._lock:
            return self._records.pop(handle, None)

    def register(self, record: R) -> str:
        """Store *record* under a fresh handle and return the handle."""
        handle = str(uuid.uuid4())
        with self._lock:
            # handles are never reused
            while handle in self._records:
                handle = str(uuid.uuid4())
            self._records[handle] = record
        return handle

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class JobRegistry(Registry[JobRecord]):
    """Local job handles mapped to provider job metadata."""


class BatchRegistry(Registry[BatchRecord]):
    pass


class SessionRegistry(Registry[SessionRecord]):
    """Sessions are keyed by the provider-issued session id."""
