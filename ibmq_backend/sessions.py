"""Provider compute sessions mirrored in local state."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from .dispatch import CLOSE_SESSION_OPS, CREATE_SESSION_OPS, GET_SESSION_OPS, Dispatcher
from .exceptions import IBMQDispatchError, IBMQValidationError
from .normalize import extract_session_id, parse_body
from .state import AuthState, SessionRegistry
from .types import SessionClosure, SessionInfo, SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_TTL = 3600


class SessionManager:
    """Create, close and query ephemeral provider sessions.

    Local records are bookkeeping only: closing a session removes the local
    record even when the provider does not confirm the closure, so local and
    provider state may diverge.
    """

    def __init__(self, dispatcher: Dispatcher, auth: AuthState, registry: SessionRegistry | None = None):
        self._dispatcher = dispatcher
        self._auth = auth
        self.registry = registry or SessionRegistry()

    def create_session(self, options: Mapping[str, Any]) -> SessionInfo:
        device = options.get("backend")
        if not device:
            raise IBMQValidationError("Backend required ('backend') to create a session")
        max_ttl = options.get("max_ttl")
        if max_ttl is None:
            max_ttl = DEFAULT_MAX_TTL
        if not isinstance(max_ttl, int) or isinstance(max_ttl, bool) or max_ttl <= 0:
            raise IBMQValidationError(f"max_ttl must be a positive number of seconds, got {max_ttl!r}")
        token = self._auth.require_token("create_session")

        body: dict[str, Any] = {"backend": device, "max_ttl": max_ttl}
        for key in ("instance", "channel", "mode"):
            if options.get(key) is not None:
                body[key] = options[key]

        resp = self._dispatcher.dispatch(CREATE_SESSION_OPS, {"body": body}, token)
        if resp is None:
            raise IBMQDispatchError(CREATE_SESSION_OPS)
        session_id = extract_session_id(resp.body)
        if session_id is None:
            raise IBMQDispatchError(
                CREATE_SESSION_OPS,
                f"provider returned no session id (status {resp.status_code})",
            )

        record = SessionRecord(
            device_id=device,
            created_at=datetime.now(timezone.utc),
            max_duration=max_ttl,
        )
        self.registry.put(session_id, record)
        logger.info("Created session %s on %s", session_id, device)
        return SessionInfo(
            session_id=session_id,
            device_id=record.device_id,
            created_at=record.created_at,
            max_duration=record.max_duration,
            raw=resp.body,
        )

    def close_session(self, session_id: str) -> SessionClosure:
        """Close *session_id*; never raises on provider failure."""
        resp = self._dispatcher.dispatch(CLOSE_SESSION_OPS, {"id": session_id}, self._auth.current_token())
        had_local = self.registry.pop(session_id) is not None
        closed = resp is not None and resp.status_code < 400
        if not closed:
            logger.warning("Provider did not confirm closure of session %s", session_id)
        return SessionClosure(
            session_id=session_id,
            closed=closed,
            had_local_record=had_local,
            raw=resp.body if resp is not None else None,
        )

    def session_info(self, session_id: str) -> dict[str, Any]:
        """Local session fields merged with a fresh provider query.

        Provider fields win when present; local fields fill whatever the
        provider response omits.
        """
        record = self.registry.get(session_id)
        merged: dict[str, Any] = {}
        if record is not None:
            merged = {
                "id": session_id,
                "backend_name": record.device_id,
                "created_at": record.created_at.isoformat(),
                "max_ttl": record.max_duration,
            }

        resp = self._dispatcher.dispatch(GET_SESSION_OPS, {"id": session_id}, self._auth.current_token())
        doc = parse_body(resp.body) if resp is not None and resp.status_code < 400 else None
        if isinstance(doc, dict):
            merged.update({k: v for k, v in doc.items() if v is not None})

        if not merged:
            return {"error": "unknown-session", "session_id": session_id}
        merged["session_id"] = session_id
        return merged
