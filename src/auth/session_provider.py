"""
Session provider: sign-in, sign-up, sign-out and profile updates for one
browser session, backed by the external auth service and the process-wide
SessionStore.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

from auth import google_oauth
from auth.provider import AuthError, AuthProvider
from auth.session import (
    GOOGLE_PROVIDER,
    Principal,
    Session,
    normalize_principal,
    session_from_token_response,
)
from storage.session_store import SessionStore

logger = logging.getLogger(__name__)

PROFILE_REFRESH_DELAY_S = float(os.getenv("PROFILE_REFRESH_DELAY_S", "0.5"))
PROFILE_REFRESH_ATTEMPTS = int(os.getenv("PROFILE_REFRESH_ATTEMPTS", "5"))


@dataclass
class AuthResult:
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SessionProvider:
    def __init__(
        self,
        store: SessionStore,
        auth: AuthProvider,
        session_id: Optional[str] = None,
    ):
        self.store = store
        self.auth = auth
        self.session_id = session_id
        self.loading = True

    @property
    def session(self) -> Optional[Session]:
        return self.store.get(self.session_id)

    @property
    def user(self) -> Optional[Principal]:
        session = self.session
        return session.principal if session else None

    @asynccontextmanager
    async def _transition(self):
        self.loading = True
        try:
            yield
        finally:
            self.loading = False

    def _establish(self, session: Session) -> Session:
        if self.session_id:
            self.store.teardown(self.session_id)
        session = self.store.save(session)
        self.session_id = session.session_id
        logger.info(f"Session established for user {session.user_id}")
        return session

    async def resolve(self) -> Optional[Principal]:
        """Initial resolution: re-read the principal behind the stored session."""
        async with self._transition():
            session = self.session
            if session is None:
                return None
            try:
                raw = await self.auth.get_user(session.access_token)
            except AuthError as e:
                if e.status_code == 401:
                    refreshed = await self._refresh_tokens(session)
                    if refreshed is None:
                        logger.info("Stored session rejected by auth provider; dropping it")
                        self.store.teardown(self.session_id)
                        return None
                    return refreshed.principal
                logger.error(f"Error getting session: {e}")
                return session.principal
            return self._refresh_principal(raw).principal

    async def _refresh_tokens(self, session: Session) -> Optional[Session]:
        """Trade the refresh token for a new access token, keeping the session id."""
        if not session.refresh_token:
            return None
        try:
            payload = await self.auth.refresh_session(session.refresh_token)
        except AuthError as e:
            logger.warning(f"Token refresh failed: {e}")
            return None

        renewed = session_from_token_response(
            payload,
            provider_token=session.provider_token,
            provider_refresh_token=session.provider_refresh_token,
        ).model_copy(update={"session_id": session.session_id})
        logger.info(f"Access token refreshed for user {renewed.user_id}")
        return self.store.save(renewed)

    def _refresh_principal(self, raw_user: Dict[str, Any]) -> Session:
        session = self.session
        updated = session.model_copy(update={"principal": normalize_principal(raw_user)})
        return self.store.save(updated)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        async with self._transition():
            try:
                payload = await self.auth.sign_in_with_password(email, password)
            except AuthError as e:
                return AuthResult(error=e.message)
            self._establish(session_from_token_response(payload))
            return AuthResult()

    def sign_in_with_google(self) -> str:
        """Start the OAuth redirect; the browser leaves and comes back to /auth/callback."""
        url, state, verifier = google_oauth.authorization_url()
        self.store.remember_oauth_state(state, verifier)
        return url

    async def complete_google_sign_in(self, code: str, state: str) -> AuthResult:
        async with self._transition():
            try:
                verifier = self.store.pop_oauth_verifier(state)
            except KeyError:
                return AuthResult(error="Sign-in request expired or was not started here")

            try:
                credentials = await asyncio.to_thread(
                    google_oauth.exchange_code, code, state, verifier
                )
            except Exception as e:
                logger.error(f"OAuth code exchange failed: {e}")
                return AuthResult(error=f"Google sign-in failed: {e}")

            if not credentials.id_token:
                return AuthResult(error="Google did not return an identity token")

            try:
                payload = await self.auth.sign_in_with_id_token(
                    GOOGLE_PROVIDER, credentials.id_token, credentials.token
                )
            except AuthError as e:
                return AuthResult(error=e.message)

            self._establish(
                session_from_token_response(
                    payload,
                    provider_token=credentials.token,
                    provider_refresh_token=credentials.refresh_token,
                )
            )
            return AuthResult()

    async def sign_up(self, email: str, password: str) -> AuthResult:
        async with self._transition():
            try:
                await self.auth.sign_up(email, password)
            except AuthError as e:
                return AuthResult(error=e.message)
            return AuthResult()

    async def sign_out(self) -> None:
        async with self._transition():
            session = self.session
            if session is not None:
                try:
                    await self.auth.sign_out(session.access_token)
                except AuthError as e:
                    logger.warning(f"Provider sign-out failed, clearing locally: {e}")
            self.store.teardown(self.session_id)
            self.session_id = None

    async def update_profile(
        self,
        avatar_url: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> AuthResult:
        session = self.session
        if session is None:
            return AuthResult(error="Not authenticated")

        updates = {}
        if full_name is not None:
            updates["full_name"] = full_name
        if avatar_url is not None:
            updates["avatar_url"] = avatar_url

        merged = {**session.principal.metadata, **updates}

        async with self._transition():
            try:
                await self.auth.update_user(session.access_token, merged)
            except AuthError as e:
                return AuthResult(error=e.message)

            # The provider may serve the old record for a moment after the write
            raw = None
            for attempt in range(PROFILE_REFRESH_ATTEMPTS):
                if attempt:
                    await asyncio.sleep(PROFILE_REFRESH_DELAY_S)
                try:
                    raw = await self.auth.get_user(session.access_token)
                except AuthError as e:
                    logger.warning(f"Profile refresh attempt {attempt + 1} failed: {e}")
                    raw = None
                if raw is not None and _reflects(raw, updates):
                    break

            if raw is not None and _reflects(raw, updates):
                self._refresh_principal(raw)
            else:
                principal = session.principal.model_copy(
                    update={**updates, "metadata": merged}
                )
                self.store.save(session.model_copy(update={"principal": principal}))
            return AuthResult()


def _reflects(raw_user: Dict[str, Any], updates: Dict[str, Any]) -> bool:
    principal = normalize_principal(raw_user)
    return all(principal.metadata.get(k) == v for k, v in updates.items())
