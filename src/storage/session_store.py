"""
Process-wide session store.

Holds the authenticated sessions, the per-session user-id slot read by the
context-processing trigger, and pending Google OAuth handshakes. Browsers
only ever see an encrypted session id.
"""

import logging
import os
import secrets
import time
from typing import Callable, Dict, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken

from auth.session import Session
from smart_todo.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

SESSION_TTL_S = float(os.getenv("SESSION_TTL_S", str(7 * 24 * 3600)))
OAUTH_STATE_TTL_S = float(os.getenv("OAUTH_STATE_TTL_S", "600"))


class SessionStore:
    def __init__(
        self,
        key: Optional[str] = None,
        session_ttl_s: float = SESSION_TTL_S,
        oauth_state_ttl_s: float = OAUTH_STATE_TTL_S,
        clock: Callable[[], float] = time.time,
    ):
        # Generate a key if not provided (for development/testing only)
        key = key or os.getenv("SESSION_ENCRYPTION_KEY")
        if not key:
            logger.warning(
                "SESSION_ENCRYPTION_KEY not set. Generating a temporary key."
            )
            key = Fernet.generate_key().decode()

        try:
            self.fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid encryption key: {e}")
            # Existing cookies become unreadable, which just signs everyone out
            self.fernet = Fernet(Fernet.generate_key())

        self.session_ttl_s = session_ttl_s
        self.oauth_state_ttl_s = oauth_state_ttl_s
        self._clock = clock

        self._sessions: Dict[str, Session] = {}
        self._user_ids: Dict[str, str] = {}
        # session id -> last write; state -> (verifier, issued at)
        self._touched: Dict[str, float] = {}
        self._oauth_verifiers: Dict[str, Tuple[Optional[str], float]] = {}

    # -- cookie codec ---------------------------------------------------

    def encode_session_id(self, session_id: str) -> str:
        return self.fernet.encrypt(session_id.encode()).decode()

    def decode_session_id(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.warning("Discarding session cookie that failed to decrypt")
            return None

    # -- sessions -------------------------------------------------------

    def new_session_id(self) -> str:
        return secrets.token_urlsafe(32)

    def save(self, session: Session) -> Session:
        now = self._clock()
        self._evict_expired(now)
        if not session.session_id:
            session = session.model_copy(update={"session_id": self.new_session_id()})
        self._sessions[session.session_id] = session
        self._user_ids[session.session_id] = session.user_id
        self._touched[session.session_id] = now
        return session

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id or session_id not in self._sessions:
            return None
        if self._clock() - self._touched[session_id] > self.session_ttl_s:
            self.teardown(session_id)
            return None
        return self._sessions[session_id]

    def teardown(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        self._sessions.pop(session_id, None)
        self._user_ids.pop(session_id, None)
        self._touched.pop(session_id, None)
        logger.info("Session torn down")

    def clear(self) -> None:
        self._sessions.clear()
        self._user_ids.clear()
        self._touched.clear()
        self._oauth_verifiers.clear()

    def _evict_expired(self, now: float) -> None:
        stale = [
            sid for sid, touched in self._touched.items()
            if now - touched > self.session_ttl_s
        ]
        for sid in stale:
            self.teardown(sid)

        abandoned = [
            state for state, (_, issued) in self._oauth_verifiers.items()
            if now - issued > self.oauth_state_ttl_s
        ]
        for state in abandoned:
            del self._oauth_verifiers[state]

        if stale or abandoned:
            logger.info(f"Evicted {len(stale)} expired sessions and {len(abandoned)} OAuth handshakes")

    # -- user id slot ---------------------------------------------------

    def user_id(self, session_id: Optional[str]) -> str:
        """User id for a live session; stale ids are never handed out."""
        if self.get(session_id) is None:
            raise UnauthenticatedError()
        user_id = self._user_ids.get(session_id)
        if not user_id:
            raise UnauthenticatedError()
        return user_id

    # -- oauth handshakes -----------------------------------------------

    def remember_oauth_state(self, state: str, code_verifier: Optional[str]) -> None:
        now = self._clock()
        self._evict_expired(now)
        self._oauth_verifiers[state] = (code_verifier, now)

    def pop_oauth_verifier(self, state: str) -> Optional[str]:
        if state not in self._oauth_verifiers:
            raise KeyError(state)
        verifier, issued = self._oauth_verifiers.pop(state)
        if self._clock() - issued > self.oauth_state_ttl_s:
            raise KeyError(state)
        return verifier

    def __len__(self) -> int:
        return len(self._sessions)
