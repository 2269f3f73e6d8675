import logging
from typing import Optional

from storage.session_store import SessionStore

logger = logging.getLogger(__name__)

# Process-wide session store, created at startup and torn down at shutdown
session_store: Optional[SessionStore] = None


def init_session_store(key: Optional[str] = None) -> SessionStore:
    global session_store
    if session_store is None:
        session_store = SessionStore(key=key)
        logger.info("Session store initialized")
    return session_store


def teardown_session_store() -> None:
    global session_store
    if session_store is not None:
        session_store.clear()
        session_store = None
        logger.info("Session store torn down")
